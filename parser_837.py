import os
import sys
import logging
from typing import List, NamedTuple, Optional, Tuple
from config import get_config

# Configure module logger
logger = logging.getLogger(__name__)

# ISA is fixed width: the element separator follows the tag and the segment
# terminator closes the 106-character header.
ISA_ELEMENT_SEPARATOR_POS = 3
ISA_SEGMENT_TERMINATOR_POS = 105
ISA_HEADER_LENGTH = 106

SAMPLE_837 = """ISA*00*          *00*          *ZZ*SUBMITTER_ID   *ZZ*RECEIVER_ID    *210101*1000*^*00501*000000001*0*P*:~
GS*HC*SENDER_CODE*RECEIVER_CODE*20210101*1000*1*X*005010X222A1~
ST*837*0001*005010X222A1~
BHT*0019*00*1*20210101*1000*CH~
NM1*41*2*SUBMITTER_NAME*****46*TIN~
PER*IC*CONTACT_NAME*TE*1234567890~
NM1*40*2*RECEIVER_NAME*****46*TIN~
HL*1**20*1~
NM1*85*2*BILLING_PROVIDER*****XX*NPI~
N3*123 MAIN ST~
N4*ANYTOWN*ST*12345~
REF*EI*123456789~
HL*2*1*22*0~
SBR*P*18*GROUP123*INSURANCE_COMPANY*****MB~
NM1*IL*1*DOE*JOHN****MI*123456789~
N3*456 OAK ST~
N4*HOMETOWN*ST*54321~
DMG*D8*19800101*M~
NM1*PR*2*INSURANCE_COMPANY*****PI*PAYERID~
CLM*CLAIM123*100.00***11:B:1*Y*A*Y*Y~
DTP*431*D8*20210101~
CAS*CO*1*10.00~
NM1*82*1*PROVIDER*JANE****XX*NPI123~
SV1*HC:99213*75.00*UN*1***1~
DTP*472*D8*20210101~
SE*25*0001~
GE*1*1~
IEA*1*000000001~"""


def configure_logging(level=logging.INFO, log_file=None, simple_format=False):
    """
    Configure logging for the 837 validator.

    Args:
        level: Logging level (logging.DEBUG, logging.INFO, etc.)
        log_file: Optional path to log file. If None, logs to console only.
        simple_format: If True, use simple format without timestamps.
    """
    if simple_format:
        formatter = logging.Formatter('%(message)s')
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    # Handlers live on the root logger so the config and validation
    # module loggers share them.
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        file_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(file_formatter)
        root.addHandler(file_handler)


class Segment(NamedTuple):
    """One tokenized segment: tag, positional elements and the source text."""
    tag: str
    elements: Tuple[str, ...]
    raw: str


def tokenize_segments(text, segment_terminator='~', element_separator='*') -> List[Segment]:
    """
    Split an EDI document into segments.

    Blank fragments (including the one after the final terminator) are
    dropped. Tags and elements come from the fragment trimmed of surrounding
    whitespace, so documents with one segment per line tokenize the same as
    single-line ones; `raw` keeps the fragment untouched.
    Malformed segments are returned as-is; judging them is left to the
    segment validators.
    """
    if not text:
        return []

    segments = []
    for fragment in text.split(segment_terminator):
        stripped = fragment.strip()
        if not stripped:
            continue
        elements = stripped.split(element_separator)
        segments.append(Segment(tag=elements[0], elements=tuple(elements[1:]), raw=fragment))
    return segments


def serialize_segments(segments, segment_terminator='~') -> str:
    """Rebuild document text from the raw text of each segment."""
    return ''.join(segment.raw + segment_terminator for segment in segments)


def safe_element_access(elements, index, default=''):
    if 0 <= index < len(elements):
        return elements[index]
    return default


def detect_delimiters(content) -> Optional[Tuple[str, str]]:
    """
    Read delimiters from the fixed-width ISA header.

    Returns:
        (element_separator, segment_terminator), or None when the content
        does not start with a complete ISA segment.
    """
    if not content:
        return None
    content = content.lstrip()
    if not content.startswith('ISA') or len(content) < ISA_HEADER_LENGTH:
        return None

    element_separator = content[ISA_ELEMENT_SEPARATOR_POS]
    segment_terminator = content[ISA_SEGMENT_TERMINATOR_POS]
    if element_separator.isalnum() or segment_terminator.isalnum():
        return None
    return element_separator, segment_terminator


def parse_837_file(file_path):
    """Parse 837 file
    Args:
        file_path: Path to the 837 file

    Returns:
        Dict with the tokenized segments, the delimiters used and the raw content.
    """
    with open(file_path, 'r', encoding='utf-8') as f:
        content = f.read()

    config = get_config()
    element_separator = config.element_separator
    segment_terminator = config.segment_terminator

    if config.auto_detect_delimiters:
        detected = detect_delimiters(content)
        if detected:
            element_separator, segment_terminator = detected
            logger.debug("Detected delimiters from ISA: element=%r segment=%r",
                         element_separator, segment_terminator)
        else:
            logger.debug("No ISA header found in %s; using configured delimiters", file_path)

    segments = tokenize_segments(content, segment_terminator, element_separator)

    return {
        'segments': segments,
        'element_separator': element_separator,
        'segment_terminator': segment_terminator,
        'content': content
    }


def _print_result(result):
    print(f"Validation Result: {'PASSED' if result.is_valid else 'FAILED'}")
    print(f"Error Count: {result.error_count}")

    if result.violations:
        print("\nValidation Errors:")
        for error in result.errors:
            print(f"- {error}")


def main(argv=None):
    """
    Command line entry point.

    Returns:
        Process exit code: 0 when the document is valid, 1 when it has
        violations, 2 when the input or report file could not be used.
    """
    import argparse
    from validation import EDI837Validator, save_edi_to_file

    parser = argparse.ArgumentParser(description='837 EDI Segment Validator')
    parser.add_argument('edi_file', nargs='?', help='Path to an 837 EDI file')
    parser.add_argument('--sample', action='store_true', help='Validate the bundled sample 837 claim')
    parser.add_argument('-o', '--output', help='Write a report with the EDI data to this path')
    parser.add_argument('--save', action='store_true',
                        help='Write the report to the configured output_report_name')
    parser.add_argument('--no-results', action='store_true',
                        help='Leave validation results out of the written report')
    parser.add_argument('--redact', action='store_true', help='Redact patient identifiers in the report')
    parser.add_argument('--config', help='Path to a JSON config file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose (DEBUG) logging')
    args = parser.parse_args(argv)

    if not args.edi_file and not args.sample:
        parser.error('an EDI file path or --sample is required')

    config = get_config(args.config, reload=bool(args.config))
    if args.verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, str(config.get('log_level', 'INFO')).upper(), logging.INFO)
    configure_logging(level=level, log_file=config.get('log_file'),
                      simple_format=bool(config.get('simple_log_format')))

    if args.sample:
        edi_data = SAMPLE_837
        validator = EDI837Validator()
        segments = validator.tokenize(edi_data)
    else:
        if not os.path.exists(args.edi_file):
            print(f"File not found: {args.edi_file}")
            return 2
        try:
            parsed = parse_837_file(args.edi_file)
        except UnicodeDecodeError as e:
            print(f"File is not valid UTF-8 text: {args.edi_file} ({e.reason})")
            return 2
        edi_data = parsed['content']
        validator = EDI837Validator(segment_terminator=parsed['segment_terminator'],
                                    element_separator=parsed['element_separator'])
        segments = parsed['segments']

    result = validator.validate_segments(segments)
    _print_result(result)

    report_path = args.output or (config.output_report_name if args.save else None)
    if report_path:
        include_results = config.include_validation_results and not args.no_results
        saved = save_edi_to_file(edi_data, report_path,
                                 include_validation_results=include_results,
                                 redact=args.redact or config.redact_report,
                                 validator=validator)
        if not saved:
            print("\nFailed to save EDI claim file")
            return 2
        print(f"\nEDI claim saved to: {report_path}")

    return 0 if result.is_valid else 1


if __name__ == '__main__':
    sys.exit(main())
