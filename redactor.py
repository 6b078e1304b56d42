from parser_837 import detect_delimiters

# NM1 entity codes that identify a person whose name and ID must be masked
_PATIENT_ENTITY_CODES = frozenset(['IL', 'QC'])
# REF qualifiers carrying a social security or member number
_PATIENT_REF_QUALIFIERS = frozenset(['SY', '1W'])


def redact_string(text):
    if not text:
        return text

    result = []
    for char in text:
        if char.isalpha():
            result.append('X')
        elif char.isdigit():
            result.append('1')
        else:
            result.append(char)

    return ''.join(result)


def redact_837_segment(segment, element_separator):
    """
    Redact patient identifiers in one segment.

    NM1 subscriber/patient names (NM103-NM107) and IDs (NM109), the DMG
    birth date and REF SSN/member numbers are masked. Everything else is
    returned unchanged.
    """
    elements = segment.split(element_separator)

    if not elements:
        return segment

    seg_id = elements[0]

    if seg_id == 'NM1' and len(elements) > 3:
        if elements[1] in _PATIENT_ENTITY_CODES:
            for idx in range(3, min(8, len(elements))):
                if elements[idx]:
                    elements[idx] = redact_string(elements[idx])

            if len(elements) > 9 and elements[9]:
                elements[9] = redact_string(elements[9])

    elif seg_id == 'DMG' and len(elements) > 2:
        elements[2] = redact_string(elements[2])

    elif seg_id == 'REF' and len(elements) > 2:
        if elements[1] in _PATIENT_REF_QUALIFIERS:
            elements[2] = redact_string(elements[2])

    return element_separator.join(elements)


def redact_837_content(content, element_separator=None, segment_terminator=None):
    """
    Redact every segment of an 837 document.

    Delimiters not given are read from the ISA header, falling back to
    '*' and '~'. Documents written one segment per line keep their line breaks.
    """
    if not content:
        return content

    if element_separator is None or segment_terminator is None:
        detected = detect_delimiters(content) or ('*', '~')
        element_separator = element_separator or detected[0]
        segment_terminator = segment_terminator or detected[1]

    redacted_segments = []
    for segment in content.split(segment_terminator):
        if segment.strip():
            redacted_segments.append(redact_837_segment(segment.strip(), element_separator))

    joiner = segment_terminator + '\n' if '\n' in content else segment_terminator
    return joiner.join(redacted_segments) + segment_terminator
