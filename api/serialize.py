from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Union

import numpy as np
import pandas as pd


JSONScalar = Union[str, int, float, bool, None]
JSONType = Union[JSONScalar, List["JSONType"], Dict[str, "JSONType"]]


def to_jsonable(obj: Any) -> JSONType:
    """
    Convert engine and service objects into JSON-serializable structures.
    - Converts NaN/inf -> None
    - Enums -> their value
    - Objects with to_dict() (TreeNode, RecalcResult, TabularStatement) -> dict
    - DataFrame -> list of records, Series -> dict
    - Converts dict/list/tuple recursively
    """
    if obj is None:
        return None

    if isinstance(obj, Enum):
        return to_jsonable(obj.value)

    if isinstance(obj, (str, bool, int)):
        return obj

    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None

    if isinstance(obj, np.generic):
        return to_jsonable(obj.item())

    if isinstance(obj, pd.DataFrame):
        return [to_jsonable(r) for r in obj.to_dict(orient="records")]

    if isinstance(obj, pd.Series):
        return {str(k): to_jsonable(v) for k, v in obj.items()}

    if isinstance(obj, dict):
        out: Dict[str, JSONType] = {}
        for k, v in obj.items():
            out[str(k)] = to_jsonable(v)
        return out

    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]

    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_jsonable(to_dict())

    return str(obj)
