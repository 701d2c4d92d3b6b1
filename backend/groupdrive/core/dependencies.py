from typing import Optional

from fastapi import Request

from groupdrive.core.exceptions import ValidationError
from groupdrive.services.public_link_service import PublicLinkIssuer
from groupdrive.services.upload_service import ChunkUploadCoordinator


def get_upload_coordinator(request: Request) -> ChunkUploadCoordinator:
    return request.app.state.upload_coordinator


def get_link_issuer(request: Request) -> PublicLinkIssuer:
    return request.app.state.public_link_issuer


def get_base_url(request: Request) -> str:
    # Includes the /api mount point
    return str(request.base_url).rstrip("/")


def optional_id(value: Optional[int]) -> Optional[int]:
    """Clients send 0 for "no parent" / "no group"."""
    if value is None or value == 0:
        return None
    return value


def parse_id_header(value: Optional[str], header: str) -> Optional[int]:
    if value is None or value.strip().lower() in ("", "null", "none", "undefined"):
        return None
    try:
        return optional_id(int(value))
    except ValueError:
        raise ValidationError(
            f"Invalid {header} header", errors=[{"field": header, "message": "must be an integer"}]
        )


def parse_int_header(value: Optional[str], header: str) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {header} header", errors=[{"field": header, "message": "must be an integer"}]
        )
