from __future__ import annotations

from typing import cast

import msgpack

from staticache._core.models import Payload


def pack(value: Payload, /) -> bytes:
    return cast(
        bytes,
        msgpack.packb(
            {
                "body": value.body,
                "text": value.text,
            },
            use_bin_type=True,
        ),
    )


def unpack(value: bytes, /) -> Payload:
    data = msgpack.unpackb(value, raw=False)
    return Payload(body=data["body"], text=data["text"])
