ERRORS = {
  "E_LAYOUT_MISSING": "BAML file missing or unreadable",
  "E_SIGNATURE": "Header signature or version invalid",
  "E_RECORD_TYPE": "Unsupported record type",
  "E_FRAMING": "Record framing, length or field value invalid",
  "E_REFERENCE": "Deferred reference does not resolve",
  "E_TREE": "Element structure invalid",
  "E_ROUNDTRIP": "Re-encoded document does not decode to the same records",
}
