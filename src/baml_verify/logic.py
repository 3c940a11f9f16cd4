import io
import warnings
from pathlib import Path
from baml_core import BamlError, OmittedFooterWarning, build_tree, loads, write_document
from .const import ERRORS

def _fail(code: str, **extra) -> dict:
    err = {"code": code, "message": ERRORS[code], **extra}
    return {"status": "FAIL", "error_count": 1, "errors": [err]}

def verify_file(path: Path) -> dict:
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        return _fail("E_LAYOUT_MISSING", path=str(path), detail=str(e))

    try:
        doc = loads(raw)
        # Omitted footers are legal; count them instead of warning.
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", OmittedFooterWarning)
            root = build_tree(doc.records)
    except BamlError as e:
        return _fail(e.code, detail=str(e))

    buf = io.BytesIO()
    try:
        write_document(doc, buf)
        again = loads(buf.getvalue())
    except BamlError as e:
        return _fail("E_ROUNDTRIP", detail=str(e))
    if not again.same_content(doc):
        return _fail("E_ROUNDTRIP")

    omitted = sum(1 for w in caught if issubclass(w.category, OmittedFooterWarning))
    return {
        "status": "PASS",
        "error_count": 0,
        "errors": [],
        "records": len(doc.records),
        "elements": sum(1 for _ in root.walk()),
        "omitted_footers": omitted,
    }
