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

import re
from typing import Any, Collection, Literal

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

Direction = Literal["camel_to_snake", "snake_to_camel"]


def camel_to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def snake_to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def convert_keys(
    data: Any, direction: Direction, preserve: Collection[str] = ()
) -> Any:
    """
    Recursively renames the keys of every dict in `data`.

    Lists are walked element by element; all other values are returned as-is.
    Values stored under a key in `preserve` are passed through unrenamed.
    """
    if direction == "camel_to_snake":
        convert = camel_to_snake
    elif direction == "snake_to_camel":
        convert = snake_to_camel
    else:
        raise ValueError(f"Unknown key conversion: {direction}")

    def _walk(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                (convert(k) if isinstance(k, str) else k): (
                    v if k in preserve else _walk(v)
                )
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [_walk(item) for item in value]
        return value

    return _walk(data)
