"""Source clients and transformers feeding the unified patent model."""

from .patentsview import (  # noqa: F401
    PATENTSVIEW_FIELDS,
    PatentSource,
    PatentsViewClient,
    PatentsViewTransformer,
    RawPatentRecord,
    SourceResponse,
)
