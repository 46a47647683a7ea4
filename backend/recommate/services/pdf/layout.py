"""
Letter Page Layout

Builds the print HTML for a letter: US-letter page with 1in margins,
letterhead (image, or text header driven by the professor's header
config), the letter body, and the signature image. Images are inlined as
data URIs so the PDF never depends on external files.
"""
import base64
import logging
import mimetypes
import os
from typing import Optional

from jinja2 import Environment, BaseLoader

from ...models.letter_variables import BrandingBundle

logger = logging.getLogger(__name__)

LETTER_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<style>
  @page { size: letter; margin: 1in; }
  body {
    font-family: 'Times New Roman', Times, serif;
    font-size: {{ font_size }}pt;
    line-height: 1.5;
    color: #000;
  }
  .letterhead-image { margin-bottom: 1.5em; }
  .letterhead-image img { max-width: 100%; max-height: 1.25in; }
  .letterhead { text-align: center; margin-bottom: 1.5em; padding-bottom: 0.75em; border-bottom: 2px solid #333; }
  .letterhead h1 { margin: 0; font-size: {{ name_size }}pt; font-weight: bold; }
  .letterhead p { margin: 0.15em 0; font-size: {{ detail_size }}pt; color: #444; }
  .content { text-align: justify; }
  .content p { margin: 0 0 0.8em 0; }
  .content ul, .content ol { margin: 0.8em 0; padding-left: 2em; }
  .signature img { max-height: 0.9in; max-width: 3in; margin-top: 0.5em; }
</style>
</head>
<body>
{% if letterhead_uri %}
  <div class="letterhead-image"><img src="{{ letterhead_uri }}" alt="Letterhead"></div>
{% elif show_name or header_lines %}
  <div class="letterhead">
    {% if show_name %}<h1>{{ name }}</h1>{% endif %}
    {% for line in header_lines %}<p>{{ line }}</p>{% endfor %}
  </div>
{% endif %}
  <div class="content">{{ content|safe }}</div>
{% if signature_uri %}
  <div class="signature"><img src="{{ signature_uri }}" alt="Signature"></div>
{% endif %}
</body>
</html>
"""

_env = Environment(loader=BaseLoader(), autoescape=True)
_template = _env.from_string(LETTER_TEMPLATE)


def image_data_uri(path: Optional[str]) -> Optional[str]:
    """Read an image file into a data: URI, or None when unavailable."""
    if not path:
        return None
    if not os.path.isfile(path):
        logger.warning(f"Branding image missing on disk: {path}")
        return None
    mime_type, _ = mimetypes.guess_type(path)
    with open(path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("ascii")
    return f"data:{mime_type or 'application/octet-stream'};base64,{encoded}"


def build_letter_html(content: str, branding: BrandingBundle, font_size: float) -> str:
    """Letter content is inserted raw; branding text is escaped."""
    return _template.render(
        content=content,
        font_size=font_size,
        name_size=font_size + 6,
        detail_size=max(font_size - 2, 8),
        name=branding.name,
        show_name=branding.header.show_name,
        header_lines=branding.header_lines(),
        letterhead_uri=image_data_uri(branding.letterhead_image),
        signature_uri=image_data_uri(branding.signature_image),
    )
