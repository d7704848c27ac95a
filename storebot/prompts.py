"""
Prompt templates and fixed replies for the storefront assistant.

All wording lives here so prompt tuning can happen independently of the
pipeline's control flow. Any template can be replaced by name from the
``prompts:`` section of the YAML config (see ``render``).
"""
from typing import Any, Dict, Optional

from storebot.core.config import StorebotConfig, get_config

# ============================================================================
# Off-topic / general store questions
# ============================================================================

GENERAL_SYSTEM_PROMPT = """Eres el asistente virtual de {name}, {description}.

INFORMACIÓN DE LA TIENDA:
- Horario: {hours}
- Ubicación: {address}
- Pagos: {payment_methods}
- Cambios: {exchanges}
- Nos especializamos en: {specialty}
- No vendemos: {not_sold}

INSTRUCCIONES:
- Responde preguntas generales sobre la tienda
- Mantén respuestas cortas y útiles
- NO repitas saludos de bienvenida
- NO menciones productos específicos ni inventes productos, precios o stock
- NO incluyas marcadores [PRODUCTOS:]
- Si preguntan por productos fuera de nuestra especialidad, indícalo amablemente"""

# ============================================================================
# Query classification
# ============================================================================

CLASSIFICATION_PROMPT = """Clasifica la consulta de un cliente de {store_name} ({specialty}).
No vendemos: {not_sold}.

CATEGORÍAS Y SUBCATEGORÍAS DISPONIBLES (usa SOLO estos nombres exactos):
{taxonomy}

CONVERSACIÓN RECIENTE:
{history}

PRODUCTOS MOSTRADOS EN EL ÚLTIMO TURNO:
{shown_products}

CONSULTA DEL CLIENTE: "{query}"

Elige UNA intención:
- "off_topic": no pregunta por productos del catálogo (horarios, ubicación, pagos, saludos) o pide algo que no vendemos
- "follow_up": se refiere a los productos ya mostrados (p. ej. "¿lo tienen en rojo?", "¿qué tallas hay?")
- "needs_clarification": pide productos pero es demasiado vago para buscar (falta edad, género u ocasión)
- "product_query": una búsqueda de productos resoluble; indica una o más categorías candidatas

Responde SOLO con JSON válido, sin markdown:
{{"intent": "product_query", "categories": ["..."], "subcategories": ["..."], "clarification_question": ""}}

EJEMPLOS:
- "mochilas" → {{"intent": "product_query", "categories": ["Bolsos y Mochilas"], "subcategories": ["Mochilas"], "clarification_question": ""}}
- "ropa de bebé" → {{"intent": "product_query", "categories": ["Conjuntos"], "subcategories": [], "clarification_question": ""}}
- "algo bonito para regalar" → {{"intent": "needs_clarification", "categories": [], "subcategories": [], "clarification_question": "¿Para quién es el regalo y qué edad tiene?"}}
- "¿a qué hora abren?" → {{"intent": "off_topic", "categories": [], "subcategories": [], "clarification_question": ""}}"""

# ============================================================================
# Candidate filtering
# ============================================================================

CANDIDATE_FILTER_PROMPT = """Selecciona los productos MÁS RELEVANTES para la consulta del cliente.

CONSULTA: "{query}"

PRODUCTOS DISPONIBLES:
{products}

REGLAS:
- Para consultas genéricas como "mochilas", selecciona todas las mochilas
- Si la consulta menciona edad o género (p. ej. "niña de 2 años"), excluye los productos cuyo nombre indique una edad o género incompatible
- Si un producto es ambiguo, inclúyelo
- Prioriza productos con stock disponible
- Máximo {max_selection} productos
- Usa SOLO los IDs de la lista

Responde SOLO con JSON válido:
{{"productos_seleccionados": ["id1", "id2"]}}"""

# ============================================================================
# Specification validation
# ============================================================================

VALIDATION_PROMPT = """Revisa si los productos cumplen las especificaciones EXPLÍCITAS de la consulta (color, talla, precio).

CONSULTA: "{query}"

PRODUCTOS CON DETALLES:
{products}

INSTRUCCIONES:
- Si la consulta NO especifica color, talla ni precio: "tiene_especificaciones": false
- Si especifica alguno, incluye en "productos_finales" solo los productos que lo cumplen
- Si ninguno cumple exactamente, deja "productos_finales" vacío
- Máximo {max_results} productos finales; usa SOLO los IDs de la lista

Responde SOLO con JSON válido:
{{"tiene_especificaciones": true, "productos_finales": ["id1"], "son_similares": false}}"""

# ============================================================================
# Final response
# ============================================================================

RESPONSE_PROMPT = """Eres el asistente virtual de {store_name}, {description}.

{heading}
{products}

CONSULTA DEL CLIENTE: "{query}"

INSTRUCCIONES PARA LA RESPUESTA:
- Usa SOLO los datos de la lista: nombres exactos, precios, colores y tallas. No inventes nada
- Respuesta corta y directa (máximo {word_budget} palabras)
- {tone_instruction}
- Incluye nombres exactos y precios
- NO repitas saludos ni información de la tienda
- Termina con {marker}"""

RESPONSE_HEADING_EXACT = "## PRODUCTOS ENCONTRADOS:"
RESPONSE_HEADING_SIMILAR = "## PRODUCTOS SIMILARES ENCONTRADOS:"
TONE_EXACT = "Confirma que tienes estos productos"
TONE_SIMILAR = 'Menciona que son "productos similares" a lo que pidió'

# ============================================================================
# Fixed replies (no oracle involved)
# ============================================================================

NO_RESULTS_REPLY = 'No encontré productos para "{query}". ¿Te interesan nuestras categorías disponibles: {categories}?'

NO_RESULTS_REPLY_NO_CATEGORIES = 'No encontré productos para "{query}". ¿Podrías contarme un poco más de lo que buscas?'

CLARIFICATION_FALLBACK = "¿Podrías darme más detalles? Por ejemplo, para quién es (edad y si es niño o niña), la talla o la ocasión."

OFF_TOPIC_FALLBACK = (
    "Estamos en {address}, abiertos de {hours}. Aceptamos {payment_methods}. "
    "¿En qué más puedo ayudarte?"
)

SYNTHESIS_FALLBACK_EXACT = "Tenemos disponible: {items}."
SYNTHESIS_FALLBACK_SIMILAR = "Encontré productos similares: {items}."

ERROR_REPLY = "Lo siento, ocurrió un error al procesar tu consulta. ¿Podrías intentar de nuevo?"

WELCOME_MESSAGE = """¡Hola! Soy el asistente virtual de Torres Jr. 2 😊

Nos especializamos en ropa para mujeres, niños, bebés y accesorios. Puedes preguntarme por:

• **Ropa para bebé** (ajuares, overoles, bodys)
• **Ropa para niño y niña** (polos, pantalones, vestidos)
• **Ropa de mujeres** (blusas, pantalones, vestidos)
• **Ropa de maternidad y lactancia**
• **Accesorios** (bolsos, mochilas, carteras)
• **Stock, tallas y colores específicos**
• **Información de la tienda**

¿En qué puedo ayudarte hoy?"""


_DEFAULTS: Dict[str, str] = {
    "general_system": GENERAL_SYSTEM_PROMPT,
    "classification": CLASSIFICATION_PROMPT,
    "candidate_filter": CANDIDATE_FILTER_PROMPT,
    "validation": VALIDATION_PROMPT,
    "response": RESPONSE_PROMPT,
    "response_heading_exact": RESPONSE_HEADING_EXACT,
    "response_heading_similar": RESPONSE_HEADING_SIMILAR,
    "tone_exact": TONE_EXACT,
    "tone_similar": TONE_SIMILAR,
    "no_results": NO_RESULTS_REPLY,
    "no_results_no_categories": NO_RESULTS_REPLY_NO_CATEGORIES,
    "clarification_fallback": CLARIFICATION_FALLBACK,
    "off_topic_fallback": OFF_TOPIC_FALLBACK,
    "synthesis_fallback_exact": SYNTHESIS_FALLBACK_EXACT,
    "synthesis_fallback_similar": SYNTHESIS_FALLBACK_SIMILAR,
    "error": ERROR_REPLY,
    "welcome": WELCOME_MESSAGE,
}


def get_template(name: str, config: Optional[StorebotConfig] = None) -> str:
    """Template by name, honouring config overrides."""
    config = config or get_config()
    override = config.prompt_overrides.get(name)
    if override:
        return override
    return _DEFAULTS[name]


def render(name: str, config: Optional[StorebotConfig] = None, **values: Any) -> str:
    """Format a template; store facts from the config are always available."""
    config = config or get_config()
    context = {**config.store_info, **values}
    return get_template(name, config).format(**context)
