"""Supabase Storage adapter for uploaded images."""

from dataclasses import dataclass

from supabase import Client

from frame_gallery.services.uploads import BlobStore


@dataclass
class SupabaseBlobStore(BlobStore):
    """Stores blobs in a public Supabase Storage bucket."""

    client: Client
    bucket: str

    def put(self, path: str, content: bytes, content_type: str) -> str:
        """Upload bytes and return their public URL."""
        bucket = self.client.storage.from_(self.bucket)
        bucket.upload(
            path,
            content,
            file_options={"content-type": content_type, "upsert": "false"},
        )
        return bucket.get_public_url(path)
