"""Validation schemas for request payloads, one per endpoint."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from authorkit.core.validation import FieldRule


def _schema(**rules: FieldRule) -> Mapping[str, FieldRule]:
    return MappingProxyType(rules)


LICENSE_KEY_RULE = FieldRule(type="string", required=True, min_length=10, max_length=500)
SITE_URL_RULE = FieldRule(type="url", required=True)

# Upper bound of the 32-bit INTEGER columns
MAX_DB_INTEGER = 2**31 - 1
BOOK_POST_ID_RULE = FieldRule(type="integer", required=True, min_value=1, max_value=MAX_DB_INTEGER)

BOOK_COVER_SCHEMA = _schema(
    thumbnail=FieldRule(type="string", max_length=1000, default=""),
    medium=FieldRule(type="string", max_length=1000, default=""),
    large=FieldRule(type="string", max_length=1000, default=""),
    full=FieldRule(type="string", max_length=1000, default=""),
)

PURCHASE_LINKS_SCHEMA = _schema(
    amazon_in=FieldRule(type="string", max_length=1000, default=""),
    amazon_com=FieldRule(type="string", max_length=1000, default=""),
    other=FieldRule(type="string", max_length=1000, default=""),
)

VALIDATE_LICENSE_SCHEMA = _schema(
    license_key=LICENSE_KEY_RULE,
    site_url=SITE_URL_RULE,
)

ACTIVATE_LICENSE_SCHEMA = _schema(
    license_key=LICENSE_KEY_RULE,
    site_url=SITE_URL_RULE,
    site_name=FieldRule(type="string", max_length=255),
)

DEACTIVATE_LICENSE_SCHEMA = _schema(
    license_key=LICENSE_KEY_RULE,
    site_url=FieldRule(type="url"),
    instance_id=FieldRule(type="string", max_length=255),
)

CHECK_UPDATE_SCHEMA = _schema(
    license_key=LICENSE_KEY_RULE,
    plugin_slug=FieldRule(type="string", required=True, max_length=100, pattern=r"^[a-z0-9-]+$"),
    current_version=FieldRule(type="string", required=True, max_length=20, pattern=r"^\d+\.\d+\.\d+$"),
    site_url=SITE_URL_RULE,
)

REGISTER_SITE_SCHEMA = _schema(
    site_url=SITE_URL_RULE,
    site_name=FieldRule(type="string", required=True, max_length=255),
)

DEREGISTER_SITE_SCHEMA = _schema(
    site_url=SITE_URL_RULE,
)

SYNC_BOOK_SCHEMA = _schema(
    site_url=SITE_URL_RULE,
    site_name=FieldRule(type="string", required=True, max_length=255),
    book_post_id=BOOK_POST_ID_RULE,
    title=FieldRule(type="string", required=True, max_length=500),
    slug=FieldRule(type="string", max_length=255, default=""),
    description=FieldRule(type="string", max_length=20000, default=""),
    author=FieldRule(type="string", max_length=255, default=""),
    author_bio=FieldRule(type="string", max_length=5000, default=""),
    author_website=FieldRule(type="string", max_length=500, default=""),
    author_twitter=FieldRule(type="string", max_length=255, default=""),
    author_instagram=FieldRule(type="string", max_length=255, default=""),
    isbn=FieldRule(type="string", max_length=20, default=""),
    publication_date=FieldRule(type="string", pattern=r"^\d{4}-\d{2}-\d{2}$"),
    review_count=FieldRule(type="integer", min_value=0, max_value=MAX_DB_INTEGER),
    cover=FieldRule(type="object", fields=BOOK_COVER_SCHEMA),
    purchase_links=FieldRule(type="object", fields=PURCHASE_LINKS_SCHEMA),
)

REMOVE_BOOK_SCHEMA = _schema(
    site_url=SITE_URL_RULE,
    book_post_id=BOOK_POST_ID_RULE,
)

EMAIL_CAPTURE_SCHEMA = _schema(
    email=FieldRule(type="email", required=True, max_length=255),
    site_url=SITE_URL_RULE,
    site_name=FieldRule(type="string", required=True, max_length=255),
    user_login=FieldRule(type="string", max_length=100),
    user_role=FieldRule(type="string", max_length=100),
    ip_address=FieldRule(type="string", max_length=45),
    user_agent=FieldRule(type="string", max_length=1000),
    type=FieldRule(type="string", pattern=r"^(free|pro)$", default="free"),
)
