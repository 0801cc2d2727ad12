import pymupdf

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class ResumeExtractionError(Exception):
    """The uploaded document could not be read as a PDF."""


def extract_pdf_text(data: bytes) -> str:
    """Concatenated text of every page, stripped."""
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except Exception as e:
        raise ResumeExtractionError(f"Failed to open PDF: {e}") from e

    text = ""
    with doc:
        if doc.page_count == 0:
            raise ResumeExtractionError("PDF has no pages")
        try:
            for page in doc:
                text += page.get_text()
        except Exception as e:
            raise ResumeExtractionError(f"Failed to read PDF text: {e}") from e

    return text.strip()


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = ""
    while value:
        value, rem = divmod(value, 36)
        digits = BASE36_DIGITS[rem] + digits
    return digits


def compute_fingerprint(text: str) -> str:
    """
    Stable fingerprint of extracted resume text: h<base36 hash>_<length>.

    32-bit signed rolling hash (hash * 31 + code unit) over UTF-16 code
    units, so fingerprints stored by earlier deployments stay valid.
    """
    data = text.encode("utf-16-le", "surrogatepass")
    value = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return f"h{_base36(abs(value))}_{len(data) // 2}"
