import re
import html
from typing import Optional

_SCRIPT_BLOCK = re.compile(r'<script.*?>.*?</script>', flags=re.DOTALL | re.IGNORECASE)


def sanitize_input(text: Optional[str]) -> Optional[str]:
    """Basic input sanitization to prevent XSS."""
    if not isinstance(text, str):
        return text
    return html.escape(_SCRIPT_BLOCK.sub('', text).strip())
