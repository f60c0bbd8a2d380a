"""Recognition model catalogue."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

MB = 1024 * 1024


class ModelType(str, Enum):
    """Kind of inference requested by a job."""
    # Object detection
    YOLO_V8 = "yolo_v8"
    YOLO_V8_CUSTOM = "yolo_v8_custom"
    DETECTRON2 = "detectron2"
    DETECTRON2_CAD = "detectron2_cad"

    # OCR / text
    TESSERACT = "tesseract"
    PADDLE_OCR = "paddle_ocr"
    EASY_OCR = "easy_ocr"
    TEXT_RECOGNITION = "text_recognition"

    # Specialised
    CAD_PARSER = "cad_parser"
    FLOOR_PLAN_AI = "floor_plan_ai"
    FIRE_SAFETY_AI = "fire_safety_ai"
    ELECTRICAL_AI = "electrical_ai"

    # Analysis
    COMPLIANCE_AI = "compliance_ai"
    DIMENSION_AI = "dimension_ai"
    LAYER_ANALYZER = "layer_analyzer"


class ObjectCategory(str, Enum):
    """Categories of detectable objects."""
    ARCHITECTURAL = "architectural"
    STRUCTURAL = "structural"
    FIRE_SAFETY = "fire_safety"
    EMERGENCY = "emergency"
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    HVAC = "hvac"
    FURNITURE = "furniture"
    EQUIPMENT = "equipment"
    ACCESSIBILITY = "accessibility"
    DIMENSIONS = "dimensions"
    TEXT = "text"
    SYMBOLS = "symbols"
    GENERIC = "generic"
    UNKNOWN = "unknown"


class ResultKind(str, Enum):
    """Shape of the results payload a model produces."""
    DETECTION = "detection"
    TEXT = "text"
    DIMENSIONS = "dimensions"
    LAYERS = "layers"
    COMPLIANCE = "compliance"
    CAD_PARSE = "cad_parse"


ALL_CATEGORIES = list(ObjectCategory)


@dataclass(frozen=True)
class ModelSpec:
    """Static configuration of one inference model."""
    name: str
    type: ModelType
    endpoint: str
    timeout: int  # seconds
    max_file_size: int  # bytes
    result_kind: ResultKind
    supported_formats: List[str] = field(default_factory=list)
    categories: List[ObjectCategory] = field(default_factory=list)
    confidence_threshold: float = 0.7
    preprocessing: Optional[Dict[str, object]] = None


MODEL_SPECS: Dict[ModelType, ModelSpec] = {
    ModelType.YOLO_V8: ModelSpec(
        name="YOLO v8 General",
        type=ModelType.YOLO_V8,
        endpoint="/api/v1/ai/yolo/detect",
        timeout=120,
        max_file_size=50 * MB,
        result_kind=ResultKind.DETECTION,
        supported_formats=["jpg", "jpeg", "png", "pdf"],
        categories=[ObjectCategory.ARCHITECTURAL, ObjectCategory.FURNITURE, ObjectCategory.EQUIPMENT],
        confidence_threshold=0.7,
    ),
    ModelType.YOLO_V8_CUSTOM: ModelSpec(
        name="YOLO v8 CAD Specialized",
        type=ModelType.YOLO_V8_CUSTOM,
        endpoint="/api/v1/ai/yolo/detect-cad",
        timeout=180,
        max_file_size=100 * MB,
        result_kind=ResultKind.DETECTION,
        supported_formats=["dwg", "dxf", "pdf", "jpg", "png"],
        categories=ALL_CATEGORIES,
        confidence_threshold=0.8,
        preprocessing={"resize": {"width": 1024, "height": 1024}, "normalize": True},
    ),
    ModelType.DETECTRON2: ModelSpec(
        name="Detectron2",
        type=ModelType.DETECTRON2,
        endpoint="/api/v1/ai/detectron2/detect",
        timeout=300,
        max_file_size=100 * MB,
        result_kind=ResultKind.DETECTION,
        supported_formats=["jpg", "jpeg", "png"],
        categories=[ObjectCategory.ARCHITECTURAL, ObjectCategory.STRUCTURAL, ObjectCategory.EQUIPMENT],
        confidence_threshold=0.75,
    ),
    ModelType.DETECTRON2_CAD: ModelSpec(
        name="Detectron2 CAD Specialized",
        type=ModelType.DETECTRON2_CAD,
        endpoint="/api/v1/ai/detectron2/detect-cad",
        timeout=600,
        max_file_size=200 * MB,
        result_kind=ResultKind.DETECTION,
        supported_formats=["dwg", "dxf", "ifc", "pdf"],
        categories=ALL_CATEGORIES,
        confidence_threshold=0.85,
        preprocessing={"normalize": True},
    ),
    ModelType.TESSERACT: ModelSpec(
        name="Tesseract OCR",
        type=ModelType.TESSERACT,
        endpoint="/api/v1/ai/ocr/tesseract",
        timeout=60,
        max_file_size=50 * MB,
        result_kind=ResultKind.TEXT,
        supported_formats=["jpg", "jpeg", "png", "pdf"],
        categories=[ObjectCategory.TEXT, ObjectCategory.DIMENSIONS],
        confidence_threshold=0.6,
        preprocessing={"grayscale": True},
    ),
    ModelType.PADDLE_OCR: ModelSpec(
        name="PaddleOCR",
        type=ModelType.PADDLE_OCR,
        endpoint="/api/v1/ai/ocr/paddle",
        timeout=90,
        max_file_size=50 * MB,
        result_kind=ResultKind.TEXT,
        supported_formats=["jpg", "jpeg", "png", "pdf"],
        categories=[ObjectCategory.TEXT, ObjectCategory.DIMENSIONS],
        confidence_threshold=0.7,
    ),
    ModelType.EASY_OCR: ModelSpec(
        name="EasyOCR",
        type=ModelType.EASY_OCR,
        endpoint="/api/v1/ai/ocr/easy",
        timeout=60,
        max_file_size=30 * MB,
        result_kind=ResultKind.TEXT,
        supported_formats=["jpg", "jpeg", "png"],
        categories=[ObjectCategory.TEXT],
        confidence_threshold=0.65,
    ),
    ModelType.TEXT_RECOGNITION: ModelSpec(
        name="Custom Text Recognition",
        type=ModelType.TEXT_RECOGNITION,
        endpoint="/api/v1/ai/text/recognize",
        timeout=120,
        max_file_size=100 * MB,
        result_kind=ResultKind.TEXT,
        supported_formats=["dwg", "dxf", "pdf"],
        categories=[ObjectCategory.TEXT, ObjectCategory.DIMENSIONS],
        confidence_threshold=0.8,
    ),
    ModelType.CAD_PARSER: ModelSpec(
        name="CAD Parser",
        type=ModelType.CAD_PARSER,
        endpoint="/api/v1/ai/cad/parse",
        timeout=300,
        max_file_size=500 * MB,
        result_kind=ResultKind.CAD_PARSE,
        supported_formats=["dwg", "dxf", "ifc"],
        categories=ALL_CATEGORIES,
        confidence_threshold=0.9,
    ),
    ModelType.FLOOR_PLAN_AI: ModelSpec(
        name="Floor Plan AI",
        type=ModelType.FLOOR_PLAN_AI,
        endpoint="/api/v1/ai/floorplan/analyze",
        timeout=240,
        max_file_size=100 * MB,
        result_kind=ResultKind.DETECTION,
        supported_formats=["dwg", "dxf", "pdf", "jpg", "png"],
        categories=[ObjectCategory.ARCHITECTURAL, ObjectCategory.ACCESSIBILITY, ObjectCategory.DIMENSIONS],
        confidence_threshold=0.85,
    ),
    ModelType.FIRE_SAFETY_AI: ModelSpec(
        name="Fire Safety AI",
        type=ModelType.FIRE_SAFETY_AI,
        endpoint="/api/v1/ai/fire-safety/analyze",
        timeout=180,
        max_file_size=100 * MB,
        result_kind=ResultKind.DETECTION,
        supported_formats=["dwg", "dxf", "pdf"],
        categories=[ObjectCategory.FIRE_SAFETY, ObjectCategory.EMERGENCY],
        confidence_threshold=0.9,
    ),
    ModelType.ELECTRICAL_AI: ModelSpec(
        name="Electrical Systems AI",
        type=ModelType.ELECTRICAL_AI,
        endpoint="/api/v1/ai/electrical/analyze",
        timeout=200,
        max_file_size=100 * MB,
        result_kind=ResultKind.DETECTION,
        supported_formats=["dwg", "dxf", "pdf"],
        categories=[ObjectCategory.ELECTRICAL],
        confidence_threshold=0.85,
    ),
    ModelType.COMPLIANCE_AI: ModelSpec(
        name="Compliance Analyzer AI",
        type=ModelType.COMPLIANCE_AI,
        endpoint="/api/v1/ai/compliance/check",
        timeout=400,
        max_file_size=200 * MB,
        result_kind=ResultKind.COMPLIANCE,
        supported_formats=["dwg", "dxf", "ifc", "pdf"],
        categories=ALL_CATEGORIES,
        confidence_threshold=0.95,
    ),
    ModelType.DIMENSION_AI: ModelSpec(
        name="Dimension Extractor AI",
        type=ModelType.DIMENSION_AI,
        endpoint="/api/v1/ai/dimensions/extract",
        timeout=150,
        max_file_size=100 * MB,
        result_kind=ResultKind.DIMENSIONS,
        supported_formats=["dwg", "dxf", "pdf"],
        categories=[ObjectCategory.DIMENSIONS, ObjectCategory.TEXT],
        confidence_threshold=0.8,
    ),
    ModelType.LAYER_ANALYZER: ModelSpec(
        name="CAD Layer Analyzer",
        type=ModelType.LAYER_ANALYZER,
        endpoint="/api/v1/ai/layers/analyze",
        timeout=120,
        max_file_size=200 * MB,
        result_kind=ResultKind.LAYERS,
        supported_formats=["dwg", "dxf", "ifc"],
        categories=ALL_CATEGORIES,
        confidence_threshold=0.7,
    ),
}


def get_model_spec(model_type: ModelType) -> ModelSpec:
    return MODEL_SPECS[ModelType(model_type)]
