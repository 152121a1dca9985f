# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Extent helpers shared by the substitution rules.
"""

from typing import Any, Dict

from .models import DEFAULT_WKID, Envelope


def buffered_extent(envelope: Envelope, buffer: float) -> Dict[str, Any]:
    """
    Expand an envelope by ``buffer`` on each of its four bounds.

    The result is a web map extent in geographic coordinates (WKID 4326).
    """
    return {
        "xmin": envelope.xmin - buffer,
        "ymin": envelope.ymin - buffer,
        "xmax": envelope.xmax + buffer,
        "ymax": envelope.ymax + buffer,
        "spatialReference": {"wkid": DEFAULT_WKID},
    }
