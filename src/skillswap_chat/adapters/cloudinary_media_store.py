"""Cloudinary unsigned-upload client."""

from dataclasses import dataclass

import httpx

from skillswap_chat.domain.errors import StoreUnavailableError
from skillswap_chat.services.media import MediaStore


@dataclass
class HttpxCloudinaryMediaStore(MediaStore):
    """Media store posting to Cloudinary's upload API with httpx."""

    cloud_name: str
    upload_preset: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, cloud_name: str, upload_preset: str) -> "HttpxCloudinaryMediaStore":
        """Create a media store with a managed httpx session."""
        return cls(
            cloud_name=cloud_name,
            upload_preset=upload_preset,
            http_client=httpx.AsyncClient(),
        )

    async def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """Upload a file and let Cloudinary detect the resource type."""
        url = f"https://api.cloudinary.com/v1_1/{self.cloud_name}/auto/upload"
        try:
            response = await self.http_client.post(
                url,
                data={"upload_preset": self.upload_preset},
                files={"file": (filename, data, content_type)},
                timeout=60,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"Media upload failed: {exc}") from exc
        secure_url = response.json().get("secure_url")
        if not secure_url:
            raise StoreUnavailableError("Media upload returned no URL")
        return str(secure_url)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
