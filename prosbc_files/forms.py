"""
prosbc_files.forms
==================
Builds the exact form submissions the appliance expects.

The appliance is a Rails application without an API, so each write is a
re-submission of one of its own HTML forms.  Field names follow a
per-kind convention that must be reproduced exactly:

==============  ==================================  ================================  ===============================================
kind            file field                          id field                          container field
==============  ==================================  ================================  ===============================================
Definition      tbgw_routesets_definition[file]     tbgw_routesets_definition[id]     tbgw_routesets_definition[tbgw_files_db_id]
Digit map       tbgw_routesets_digitmap[file]       tbgw_routesets_digitmap[id]       tbgw_routesets_digitmap[tbgw_files_db_id]
==============  ==================================  ================================  ===============================================

All writes are POSTs; updates and deletes carry a ``_method`` override.
The CSRF token always travels as a form field, never as a header.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path

from .config import (
    ALLOWED_EXTENSIONS,
    COLLECTION_URL,
    EDIT_FORM_URL,
    LISTING_PAGE,
    MAX_UPLOAD_BYTES,
    NEW_FORM_URL,
    RECORD_URL,
    TOKEN_FIELD,
)
from .errors import InvalidPayload
from .models import FormRequest, Operation, Payload, ResourceKind


def field_names(kind: ResourceKind) -> dict[str, str]:
    """Return the file/id/container field names for *kind*."""
    ns = kind.namespace
    return {
        "file": f"{ns}[file]",
        "id": f"{ns}[id]",
        "container": f"{ns}[tbgw_files_db_id]",
    }


def _content_type(filename: str) -> str:
    if filename.lower().endswith(".csv"):
        return "text/csv"
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def validate_payload(payload: Payload) -> None:
    """
    Local sanity checks before anything is sent.

    Creates and updates need a named, non-empty file no larger than
    10 MiB with a .csv/.txt/.json extension; updates and deletes need a
    record id.  Raises :class:`InvalidPayload` listing every problem.
    """
    errors = []
    if payload.operation in (Operation.CREATE, Operation.UPDATE):
        if not payload.filename:
            errors.append("No file provided")
        else:
            if not payload.filename.lower().endswith(ALLOWED_EXTENSIONS):
                errors.append(
                    "Invalid file type. Allowed types: " + ", ".join(ALLOWED_EXTENSIONS)
                )
        if not payload.content:
            errors.append("File content is empty")
        elif payload.size > MAX_UPLOAD_BYTES:
            errors.append(
                f"File size ({payload.size // (1024 * 1024)}MB) exceeds maximum allowed "
                f"({MAX_UPLOAD_BYTES // (1024 * 1024)}MB)"
            )
    if payload.operation in (Operation.UPDATE, Operation.DELETE) and not payload.record_id:
        errors.append("Record id is required")
    if errors:
        raise InvalidPayload("File validation failed: " + ", ".join(errors))


def token_source_path(op: Operation, kind: ResourceKind, record_id: str | None = None,
                      file_db_id: int = 1) -> str:
    """Path of the page whose form supplies the token for *op*."""
    if op is Operation.UPDATE:
        return EDIT_FORM_URL.format(db=file_db_id, collection=kind.collection, id=record_id)
    return NEW_FORM_URL.format(db=file_db_id, collection=kind.collection)


def build_form_request(
    op: Operation,
    kind: ResourceKind,
    payload: Payload,
    token: str,
    record_id: str | None = None,
    file_db_id: int = 1,
    referer: str | None = None,
) -> FormRequest:
    """
    Produce the method, path, fields and headers for one write.

    *record_id* is the id the form expects in ``{namespace}[id]`` (it may
    differ from the id in the URL, which is ``payload.record_id``).  This
    is a pure function of its arguments.
    """
    if not token:
        raise InvalidPayload("Cannot build a form request without a CSRF token")

    names = field_names(kind)
    url_id = payload.record_id
    fields: dict[str, str] = {}
    files: dict[str, tuple[str, bytes, str]] = {}
    headers: dict[str, str] = {}

    if op is Operation.CREATE:
        if not payload.filename or payload.content is None:
            raise InvalidPayload("Create requires a file")
        path = COLLECTION_URL.format(db=file_db_id, collection=kind.collection)
        fields[TOKEN_FIELD] = token
        fields[names["container"]] = str(file_db_id)
        fields["commit"] = "Import"
        files[names["file"]] = (payload.filename, payload.content, _content_type(payload.filename))
        default_referer = NEW_FORM_URL.format(db=file_db_id, collection=kind.collection)

    elif op is Operation.UPDATE:
        if not url_id:
            raise InvalidPayload("Update requires a record id")
        if not payload.filename or payload.content is None:
            raise InvalidPayload("Update requires a file")
        path = RECORD_URL.format(db=file_db_id, collection=kind.collection, id=url_id)
        fields["_method"] = "put"
        fields[TOKEN_FIELD] = token
        fields[names["id"]] = str(record_id or url_id)
        fields[names["container"]] = str(file_db_id)
        fields["commit"] = "Update"
        files[names["file"]] = (payload.filename, payload.content, _content_type(payload.filename))
        headers["X-Requested-With"] = "XMLHttpRequest"
        default_referer = EDIT_FORM_URL.format(db=file_db_id, collection=kind.collection, id=url_id)

    elif op is Operation.DELETE:
        if not url_id:
            raise InvalidPayload("Delete requires a record id")
        path = RECORD_URL.format(db=file_db_id, collection=kind.collection, id=url_id)
        fields[TOKEN_FIELD] = token
        fields["_method"] = "delete"
        headers["X-Requested-With"] = "XMLHttpRequest"
        default_referer = LISTING_PAGE.format(db=file_db_id)

    else:  # pragma: no cover - enum is closed
        raise InvalidPayload(f"Unsupported operation: {op!r}")

    headers["Referer"] = referer or default_referer
    return FormRequest(
        method="POST",
        path=path,
        fields=fields,
        files=files,
        headers=headers,
        kind=kind,
        operation=op,
    )


def payload_from_path(op: Operation, path: "str | Path", record_id: str | None = None) -> Payload:
    """Read a local file into a :class:`Payload`."""
    p = Path(path)
    return Payload(operation=op, filename=p.name, content=p.read_bytes(), record_id=record_id)
