"""
837 Segment Validation System
=============================

This module validates 837 EDI claim documents segment by segment:
- Per-segment rule sets (element counts, fixed codes, amounts)
- Tag-based dispatch through a read-only validator registry
- Fail-soft aggregation of every violation in document order
- Plain text reports with the original EDI data
"""

from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional
import logging
import re
from config import get_config
from parser_837 import Segment, tokenize_segments, safe_element_access
import redactor

logger = logging.getLogger(__name__)

# Fixed point amount: optional sign, '.' as the only separator, no exponent
_DECIMAL_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")

REPETITION_SEPARATOR = '^'
HEALTHCARE_CLAIM_FUNCTIONAL_ID = 'HC'
HEALTHCARE_CLAIM_TRANSACTION_SET = '837'
VALID_ENTITY_IDENTIFIER_CODES = frozenset(['41', '85', '87', 'PE', 'PR', 'QC'])


class Violation(NamedTuple):
    """One rule failure, scoped to the segment tag it was found on."""
    tag: str
    message: str

    def __str__(self):
        return f"{self.tag}: {self.message}"

    def to_dict(self):
        """Convert to dictionary for JSON serialization"""
        return {'tag': self.tag, 'message': self.message}


class ValidationResult:
    """
    Aggregated outcome of one validation run.

    ``is_valid`` is computed from ``violations`` on every access. The engine
    freezes the result before handing it back; after that ``add`` raises.
    """

    def __init__(self):
        self._violations: List[Violation] = []
        self._frozen = False
        self.segment_count = 0

    def add(self, tag: str, message: str):
        if self._frozen:
            raise RuntimeError("ValidationResult is frozen")
        self._violations.append(Violation(tag, message))

    def freeze(self) -> 'ValidationResult':
        self._frozen = True
        self._violations = tuple(self._violations)
        return self

    @property
    def violations(self):
        return tuple(self._violations)

    @property
    def is_valid(self) -> bool:
        return not self._violations

    @property
    def errors(self) -> List[str]:
        """Violations rendered as 'TAG: message' lines"""
        return [str(v) for v in self._violations]

    @property
    def error_count(self) -> int:
        return len(self._violations)

    def to_dict(self):
        return {
            'is_valid': self.is_valid,
            'segment_count': self.segment_count,
            'error_count': self.error_count,
            'violations': [v.to_dict() for v in self._violations],
        }

    def __repr__(self):
        status = 'PASSED' if self.is_valid else 'FAILED'
        return f"ValidationResult({status}, {self.error_count} violations)"


# ============================================================
# SEGMENT VALIDATORS
# Each takes a Segment and returns its violation messages. The
# segment tag is prefixed by the engine, not here.
# ============================================================

def is_valid_decimal(value) -> bool:
    """Locale-independent decimal check: '75.00', '-1', '.5' pass; '1,000', '1e3', 'NaN' fail."""
    if not value or not _DECIMAL_PATTERN.fullmatch(value):
        return False
    try:
        Decimal(value)
    except InvalidOperation:
        return False
    return True


def validate_isa(segment: Segment) -> List[str]:
    """ISA (Interchange Control Header)"""
    errors = []
    elements = segment.elements
    if len(elements) < 16:
        errors.append("ISA segment must have at least 16 elements")

    if len(elements) > 11 and elements[11] != REPETITION_SEPARATOR:
        errors.append(f"ISA12 must be '{REPETITION_SEPARATOR}' (repetition separator)")

    return errors


def validate_gs(segment: Segment) -> List[str]:
    """GS (Functional Group Header)"""
    errors = []
    if len(segment.elements) < 8:
        errors.append("GS segment must have at least 8 elements")

    if segment.elements and segment.elements[0] != HEALTHCARE_CLAIM_FUNCTIONAL_ID:
        errors.append(f"GS01 must be '{HEALTHCARE_CLAIM_FUNCTIONAL_ID}' for healthcare claims")

    return errors


def validate_st(segment: Segment) -> List[str]:
    """ST (Transaction Set Header)"""
    errors = []
    if len(segment.elements) < 2:
        errors.append("ST segment must have at least 2 elements")

    if segment.elements and segment.elements[0] != HEALTHCARE_CLAIM_TRANSACTION_SET:
        errors.append(f"ST01 must be '{HEALTHCARE_CLAIM_TRANSACTION_SET}' for healthcare claims")

    return errors


def validate_bht(segment: Segment) -> List[str]:
    if len(segment.elements) < 4:
        return ["BHT segment must have at least 4 elements"]
    return []


def validate_nm1(segment: Segment) -> List[str]:
    """NM1 (Individual or Organizational Name)"""
    errors = []
    if len(segment.elements) < 3:
        errors.append("NM1 segment must have at least 3 elements")

    entity_code = safe_element_access(segment.elements, 0, default=None)
    if entity_code is not None and entity_code not in VALID_ENTITY_IDENTIFIER_CODES:
        errors.append(f"NM101 '{entity_code}' is not a valid entity identifier code")

    return errors


def validate_clm(segment: Segment) -> List[str]:
    if len(segment.elements) < 5:
        return ["CLM segment must have at least 5 elements"]
    return []


def validate_sv1(segment: Segment) -> List[str]:
    """
    SV1 (Professional Service)

    Short segments get a single structural error; the procedure code and
    charge amount are only read once SV101-SV103 are known to exist.
    """
    elements = segment.elements
    if len(elements) < 3:
        return ["SV1 segment must have at least 3 elements"]

    errors = []
    if not elements[0].strip():
        errors.append("SV101 (Procedure Code) is required")

    if not is_valid_decimal(elements[1]):
        errors.append("SV102 (Charge Amount) must be a valid decimal")

    return errors


SegmentValidatorFunc = Callable[[Segment], List[str]]

SEGMENT_VALIDATORS: Dict[str, SegmentValidatorFunc] = {
    'ISA': validate_isa,
    'GS': validate_gs,
    'ST': validate_st,
    'BHT': validate_bht,
    'NM1': validate_nm1,
    'CLM': validate_clm,
    'SV1': validate_sv1,
}


class EDI837Validator:
    """
    Validation engine for 837 claim documents.

    Builds its tag -> validator registry once at construction and never
    changes it afterwards, so one instance can serve any number of
    validate_document calls. Segments whose tag is not registered are
    skipped without a violation.
    """

    def __init__(self, segment_terminator: Optional[str] = None,
                 element_separator: Optional[str] = None,
                 validators: Optional[Mapping[str, SegmentValidatorFunc]] = None):
        config = get_config()
        self.segment_terminator = segment_terminator or config.segment_terminator
        self.element_separator = element_separator or config.element_separator
        if validators is None:
            validators = SEGMENT_VALIDATORS
        self._validators = MappingProxyType(dict(validators))

    @property
    def validators(self) -> Mapping[str, SegmentValidatorFunc]:
        return self._validators

    def get_validator(self, tag: str) -> Optional[SegmentValidatorFunc]:
        return self._validators.get(tag)

    def tokenize(self, edi_data) -> List[Segment]:
        return tokenize_segments(edi_data, self.segment_terminator, self.element_separator)

    def validate_segments(self, segments) -> ValidationResult:
        """Dispatch already tokenized segments to their validators"""
        result = ValidationResult()
        skipped = 0

        for segment in segments:
            result.segment_count += 1
            validator = self.get_validator(segment.tag)
            if validator is None:
                skipped += 1
                logger.debug("No validator registered for %s segment; skipping", segment.tag)
                continue
            for message in validator(segment):
                result.add(segment.tag, message)

        logger.info("Validated %d segments (%d unchecked): %s, %d violation(s)",
                    result.segment_count, skipped,
                    'PASSED' if result.is_valid else 'FAILED', result.error_count)
        return result.freeze()

    def validate_document(self, edi_data) -> ValidationResult:
        """
        Validate a complete EDI document.

        Args:
            edi_data: Raw document text

        Returns:
            Frozen ValidationResult with violations in document order
        """
        return self.validate_segments(self.tokenize(edi_data))

    validate_837 = validate_document


def validate_document(edi_data, segment_terminator=None, element_separator=None) -> ValidationResult:
    """Validate a document with the default registry"""
    return EDI837Validator(segment_terminator, element_separator).validate_document(edi_data)


# ============================================================
# REPORTS
# ============================================================

def generate_text_report(result: Optional[ValidationResult], edi_data: str,
                         include_validation_results: bool = True) -> str:
    """Generate a plain text report: validation status and errors, then the EDI data"""
    lines = []
    if include_validation_results and result is not None:
        lines.append(f"Validation Status: {'PASSED' if result.is_valid else 'FAILED'}")
        if result.violations:
            lines.append("Validation Errors:")
            for error in result.errors:
                lines.append(f"- {error}")
        lines.append("")
    lines.append("EDI Data:")
    lines.append(edi_data or '')
    return "\n".join(lines) + "\n"


def save_edi_to_file(edi_data: str, file_path, include_validation_results: bool = False,
                     redact: bool = False, validator: Optional[EDI837Validator] = None) -> bool:
    """
    Write the EDI data, optionally preceded by its validation results, to a file.

    Args:
        edi_data: Raw document text
        file_path: Destination path; missing parent directories are created
        include_validation_results: Validate first and put the results on top
        redact: Mask patient names, IDs and birth dates in the echoed EDI data
        validator: Engine to use; a default one is built when None

    Returns:
        True if the file was written, False otherwise.
    """
    validator = validator or EDI837Validator()
    result = validator.validate_document(edi_data) if include_validation_results else None

    output_data = edi_data
    if redact:
        output_data = redactor.redact_837_content(edi_data, validator.element_separator,
                                                  validator.segment_terminator)

    report = generate_text_report(result, output_data,
                                  include_validation_results=include_validation_results)

    path = Path(file_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(report)
    except OSError as e:
        logger.error("Failed to save EDI report to %s: %s", path, e)
        return False

    logger.info("Saved EDI report to: %s", path)
    return True
