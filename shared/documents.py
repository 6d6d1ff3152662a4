# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Conversion between record dataclasses and stored documents.

Documents only hold JSON-compatible values so the same payload can be written
to Firestore, a SQL JSON column, or kept in memory. Datetimes are stored as
fixed-width UTC strings, which keeps range filters and ordering correct when
compared as plain strings.
"""

from dataclasses import asdict, fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Type, TypeVar

from dacite import Config, from_dict

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_timestamp(value: datetime) -> str:
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        try:
            return datetime.strptime(value, TIMESTAMP_FORMAT).replace(
                tzinfo=timezone.utc
            )
        except ValueError:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def encode_value(value: Any) -> Any:
    """Recursively convert a Python value into its stored representation."""
    if isinstance(value, datetime):
        return to_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return encode_value(asdict(value))
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def id_field(cls: type) -> str:
    """Records carry their document id in the first field."""
    return fields(cls)[0].name


def to_document(record: Any) -> dict:
    return encode_value(asdict(record))


_DACITE_CONFIG = Config(
    type_hooks={datetime: parse_timestamp},
    cast=[Enum],
    check_types=False,
)


def from_document(cls: Type[T], data: dict, doc_id: Optional[str] = None) -> T:
    payload = dict(data)
    if doc_id is not None:
        payload[id_field(cls)] = doc_id
    return from_dict(data_class=cls, data=payload, config=_DACITE_CONFIG)
