# utils/storage.py
import os
import shutil
import uuid

from fastapi import UploadFile

import config

ALLOWED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

_blob_service = None


def _get_blob_service():
     global _blob_service
     if _blob_service is None:
          from azure.storage.blob import BlobServiceClient
          _blob_service = BlobServiceClient.from_connection_string(
               f"DefaultEndpointsProtocol=https;"
               f"AccountName={config.AZURE_STORAGE_ACCOUNT};"
               f"AccountKey={config.AZURE_STORAGE_KEY};"
               f"EndpointSuffix=core.windows.net"
          )
     return _blob_service


def save_proof_image(file: UploadFile, order_id: str) -> str:
     """
     Store a proof-of-delivery image and return the URL to record on the order.
     Uses Azure Blob Storage when AZURE_STORAGE_ACCOUNT is set, the local
     uploads directory otherwise.
     """
     ext = os.path.splitext(file.filename or "")[1].lower()
     if ext not in ALLOWED_IMAGE_EXTENSIONS:
          raise ValueError(f"Unsupported image type: {ext or '(none)'}")
     filename = f"{order_id}/{uuid.uuid4()}{ext}"

     if config.AZURE_STORAGE_ACCOUNT:
          container = config.AZURE_PROOF_CONTAINER
          blob_client = _get_blob_service().get_blob_client(container=container, blob=filename)
          blob_client.upload_blob(file.file, overwrite=True)
          return f"https://{config.AZURE_STORAGE_ACCOUNT}.blob.core.windows.net/{container}/{filename}"

     file_path = os.path.join(config.UPLOAD_DIR, "proofs", filename)
     os.makedirs(os.path.dirname(file_path), exist_ok=True)
     with open(file_path, "wb") as buffer:
          shutil.copyfileobj(file.file, buffer)
     return f"/uploads/proofs/{filename}"
