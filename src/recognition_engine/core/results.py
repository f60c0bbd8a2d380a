"""Typed result payloads, one variant per result kind."""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from recognition_engine.core.model_types import ModelType, ObjectCategory, ResultKind, get_model_spec


class Point(BaseModel):
    x: float
    y: float


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float


class DetectedObject(BaseModel):
    id: str
    type: str
    category: ObjectCategory = ObjectCategory.UNKNOWN
    confidence: float
    bounding_box: BoundingBox
    properties: Optional[Dict[str, Any]] = None


class ExtractedText(BaseModel):
    text: str
    position: Point
    confidence: float
    category: Optional[Literal["dimension", "label", "annotation", "title"]] = None
    font_size: Optional[float] = None


class LayerAnalysis(BaseModel):
    layer_name: str
    object_count: int
    object_types: List[str] = Field(default_factory=list)
    confidence: float = 0.0


class Dimension(BaseModel):
    type: Literal["linear", "angular", "radial", "area"]
    value: float
    unit: str
    position: Point
    confidence: float
    formatted_text: Optional[str] = None


class ComplianceCheck(BaseModel):
    rule: str
    status: Literal["pass", "fail", "warning", "not_applicable"]
    message: str
    confidence: float
    references: List[str] = Field(default_factory=list)


class ExtractedMetadata(BaseModel):
    cad_version: Optional[str] = None
    software: Optional[str] = None
    scale: Optional[str] = None
    units: Optional[str] = None
    layers: List[str] = Field(default_factory=list)
    blocks: List[str] = Field(default_factory=list)
    total_objects: Optional[int] = None


class Statistics(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    total_objects_detected: int = 0
    confidence_avg: float = 0.0
    confidence_min: float = 0.0
    confidence_max: float = 0.0
    processing_time_ms: int = 0
    model_version: str = ""


class GeneratedFile(BaseModel):
    type: Literal["thumbnail", "report", "annotated_image", "json", "xml"]
    path: str
    size: int
    created_at: datetime


class _Results(BaseModel):
    statistics: Optional[Statistics] = None
    generated_files: List[GeneratedFile] = Field(default_factory=list)

    def summary_counts(self) -> Dict[str, int]:
        """Counts recorded on the completion log entry; each variant reports its own."""
        return {}


class DetectionResults(_Results):
    kind: Literal["detection"] = "detection"
    detected_objects: List[DetectedObject] = Field(default_factory=list)

    def summary_counts(self) -> Dict[str, int]:
        return {"objects_detected": len(self.detected_objects)}


class TextResults(_Results):
    kind: Literal["text"] = "text"
    extracted_text: List[ExtractedText] = Field(default_factory=list)

    def summary_counts(self) -> Dict[str, int]:
        return {"text_extracted": len(self.extracted_text)}


class DimensionResults(_Results):
    kind: Literal["dimensions"] = "dimensions"
    dimensions: List[Dimension] = Field(default_factory=list)
    extracted_text: List[ExtractedText] = Field(default_factory=list)

    def summary_counts(self) -> Dict[str, int]:
        return {"dimensions": len(self.dimensions), "text_extracted": len(self.extracted_text)}


class LayerResults(_Results):
    kind: Literal["layers"] = "layers"
    layer_analysis: List[LayerAnalysis] = Field(default_factory=list)

    def summary_counts(self) -> Dict[str, int]:
        return {
            "layers": len(self.layer_analysis),
            "objects_detected": sum(layer.object_count for layer in self.layer_analysis),
        }


class ComplianceResults(_Results):
    kind: Literal["compliance"] = "compliance"
    compliance_analysis: List[ComplianceCheck] = Field(default_factory=list)

    def summary_counts(self) -> Dict[str, int]:
        return {
            "rules_checked": len(self.compliance_analysis),
            "rules_failed": sum(1 for check in self.compliance_analysis if check.status == "fail"),
        }


class CadParseResults(_Results):
    kind: Literal["cad_parse"] = "cad_parse"
    extracted_metadata: ExtractedMetadata = Field(default_factory=ExtractedMetadata)
    detected_objects: List[DetectedObject] = Field(default_factory=list)
    layer_analysis: List[LayerAnalysis] = Field(default_factory=list)

    def summary_counts(self) -> Dict[str, int]:
        return {
            "objects_detected": len(self.detected_objects),
            "layers": len(self.layer_analysis),
        }


RecognitionResults = Annotated[
    Union[
        DetectionResults,
        TextResults,
        DimensionResults,
        LayerResults,
        ComplianceResults,
        CadParseResults,
    ],
    Field(discriminator="kind"),
]

_results_adapter = TypeAdapter(RecognitionResults)


def parse_results(payload: Dict[str, Any]) -> RecognitionResults:
    """Validate a stored or submitted payload; ``kind`` selects the variant."""
    return _results_adapter.validate_python(payload)


def results_to_dict(results: RecognitionResults) -> Dict[str, Any]:
    return results.model_dump(mode="json")


_raw_adapter = TypeAdapter(Dict[str, Any])
_objects_adapter = TypeAdapter(List[DetectedObject])
_millis_adapter = TypeAdapter(Annotated[float, Field(ge=0, allow_inf_nan=False)])


def _confidence_stats(objects: List[DetectedObject]) -> Dict[str, float]:
    values = [o.confidence for o in objects]
    if not values:
        return {"confidence_avg": 0.0, "confidence_min": 0.0, "confidence_max": 0.0}
    return {
        "confidence_avg": sum(values) / len(values),
        "confidence_min": min(values),
        "confidence_max": max(values),
    }


def normalize_response(model_type: ModelType, raw: Dict[str, Any]) -> RecognitionResults:
    """Turn an inference service response into the model's result variant.

    Fields belonging to other variants are dropped; statistics are derived
    from detected objects when the service does not supply them. Any
    malformed input, including a non-mapping response, raises
    ``ValidationError``.
    """
    kind = get_model_spec(model_type).result_kind
    raw = _raw_adapter.validate_python(raw)
    objects = _objects_adapter.validate_python(raw.get("detected_objects") or [])

    statistics = raw.get("statistics") or {
        "total_objects_detected": len(objects),
        **_confidence_stats(objects),
        "processing_time_ms": int(_millis_adapter.validate_python(raw.get("processing_time_ms") or 0)),
        "model_version": raw.get("model_version") or ModelType(model_type).value,
    }

    payload: Dict[str, Any] = {
        "kind": kind.value,
        "statistics": statistics,
        "generated_files": raw.get("generated_files") or [],
    }
    if kind == ResultKind.DETECTION:
        payload["detected_objects"] = objects
    elif kind == ResultKind.TEXT:
        payload["extracted_text"] = raw.get("extracted_text") or []
    elif kind == ResultKind.DIMENSIONS:
        payload["dimensions"] = raw.get("dimensions") or []
        payload["extracted_text"] = raw.get("extracted_text") or []
    elif kind == ResultKind.LAYERS:
        payload["layer_analysis"] = raw.get("layer_analysis") or []
    elif kind == ResultKind.COMPLIANCE:
        payload["compliance_analysis"] = raw.get("compliance_analysis") or []
    elif kind == ResultKind.CAD_PARSE:
        payload["extracted_metadata"] = raw.get("extracted_metadata") or {}
        payload["detected_objects"] = objects
        payload["layer_analysis"] = raw.get("layer_analysis") or []

    return parse_results(payload)
