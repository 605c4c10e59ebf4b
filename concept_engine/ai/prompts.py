"""Prompt templates for souvenir concept generation."""

from __future__ import annotations

import json
from typing import Any

CONCEPT_COUNT = 3

_PHOTOREALISTIC_MARKERS = ("photorealistic", "fotorrealista")

IMAGE_PROMPT_INSTRUCTION = (
  'Para cada concepto, el "imagePrompt" debe ser una descripción detallada en inglés para una IA generativa de imágenes. '
  "Debe ser fotorrealista y describir el producto, el fondo y el estilo. "
  '(ej. "Photorealistic product shot of a rustic wooden coaster, laser-engraved with a mountain landscape, placed on a granite countertop next to a steaming mug").'
)

_OUTPUT_SHAPE = (
  'Debes responder únicamente con un objeto JSON que contenga una clave "concepts". '
  f'El valor de "concepts" debe ser un array de exactamente {CONCEPT_COUNT} objetos. '
  'Cada objeto debe tener las claves "name", "description", "materials" (una lista no vacía de materiales) y "imagePrompt".'
)

_FRESH_TEMPLATE = """Actúa como un director creativo en "{company_name}", una tienda de souvenirs personalizados.
Un cliente ha describido su idea o evento: "{user_idea}".

Tu tarea es generar {count} conceptos de souvenirs únicos y creativos basados en esa descripción.
{image_instruction}

{output_shape}

Ejemplo de respuesta JSON:
{{
  "concepts": [
    {{
      "name": "Anclas del Atardecer",
      "description": "Llaveros de bronce con forma de ancla, grabados con las iniciales y la fecha de la boda.",
      "materials": ["Bronce", "Grabado Láser"],
      "imagePrompt": "Photorealistic product shot of a bronze anchor keychain, engraved with 'Boda J&M', on a piece of driftwood on a sandy beach during sunset."
    }}
  ]
}}
"""

_VARIATION_TEMPLATE = """Actúa como un director creativo en "{company_name}".
Un cliente está interesado en este concepto: {base_concept}.
La idea original del cliente era: "{user_idea}".

Tu tarea es generar {count} NUEVAS variaciones de este concepto. Deben ser diferentes pero mantener la esencia del original.
Piensa en otros materiales, estilos o formas de personalización; si el original era "rústico", una variación podría ser "moderno y minimalista".

{output_shape}
{image_instruction}
"""


def _mentions_photorealism(template: str) -> bool:
  lowered = template.lower()
  return any(marker in lowered for marker in _PHOTOREALISTIC_MARKERS)


def _encode_base_concept(base_concept: dict[str, Any] | None) -> str:
  if not base_concept:
    return ""
  return json.dumps(base_concept, ensure_ascii=False)


def render_custom_prompt(template: str, *, company_name: str, user_idea: str, base_concept: dict[str, Any] | None) -> str:
  """Fill a tenant template's placeholders, appending the image-prompt rule when it is missing."""
  if not _mentions_photorealism(template):
    template = f"{template}\n{IMAGE_PROMPT_INSTRUCTION}"
  # Plain replacement keeps literal braces in tenant templates (e.g. JSON examples) intact.
  replacements = {"{companyName}": company_name, "{userIdea}": user_idea, "{userInput}": user_idea, "{baseConcept}": _encode_base_concept(base_concept)}
  for placeholder, value in replacements.items():
    template = template.replace(placeholder, value)
  return template


def build_concept_prompt(user_idea: str, *, company_name: str, base_concept: dict[str, Any] | None = None, custom_template: str | None = None) -> str:
  """Select the fresh, variation or tenant prompt for one generation call."""
  if custom_template and custom_template.strip():
    return render_custom_prompt(custom_template, company_name=company_name, user_idea=user_idea, base_concept=base_concept)

  if base_concept:
    return _VARIATION_TEMPLATE.format(company_name=company_name, base_concept=_encode_base_concept(base_concept), user_idea=user_idea, count=CONCEPT_COUNT, output_shape=_OUTPUT_SHAPE, image_instruction=IMAGE_PROMPT_INSTRUCTION)

  return _FRESH_TEMPLATE.format(company_name=company_name, user_idea=user_idea, count=CONCEPT_COUNT, output_shape=_OUTPUT_SHAPE, image_instruction=IMAGE_PROMPT_INSTRUCTION)
