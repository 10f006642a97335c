"""
Whose Track? - Spotify Account Manager

Stores Spotify profiles and OAuth tokens in the `spotify_accounts` table.
"""

from supabase import Client

from src.database.models import SpotifyAccount


class AccountManager:
    """Manages linked Spotify accounts."""

    def __init__(self, client: Client) -> None:
        self.client = client
        self.table = client.table("spotify_accounts")

    def upsert(
        self,
        user_id: str,
        token_info: dict,
        display_name: str | None = None,
        email: str | None = None,
        avatar_url: str | None = None,
    ) -> SpotifyAccount:
        """Create or refresh the account row after a login."""
        data = (
            self.table
            .upsert({
                "user_id": user_id,
                "display_name": display_name,
                "email": email,
                "avatar_url": avatar_url,
                "access_token": token_info["access_token"],
                "refresh_token": token_info.get("refresh_token"),
                "expires_at": int(token_info.get("expires_at", 0)),
            })
            .execute()
        )
        return SpotifyAccount.model_validate(data.data[0])

    def get(self, user_id: str) -> SpotifyAccount | None:
        data = (
            self.table
            .select("*")
            .eq("user_id", user_id)
            .execute()
        )
        if data.data:
            return SpotifyAccount.model_validate(data.data[0])
        return None

    def update_tokens(self, user_id: str, token_info: dict) -> SpotifyAccount:
        """Store a refreshed token.

        Spotify may omit the refresh token on refresh; the old one is kept.
        """
        updates: dict = {
            "access_token": token_info["access_token"],
            "expires_at": int(token_info.get("expires_at", 0)),
        }
        if token_info.get("refresh_token"):
            updates["refresh_token"] = token_info["refresh_token"]
        data = (
            self.table
            .update(updates)
            .eq("user_id", user_id)
            .execute()
        )
        return SpotifyAccount.model_validate(data.data[0])
