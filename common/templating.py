"""
Comanda - Template Configuration
=================================
Jinja2 templates setup with custom filters.
Used to render the report snapshot artifact stored with each shift report.
"""

from pathlib import Path

from fastapi.templating import Jinja2Templates

from common.helpers import format_quetzal

# Initialize templates
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def render_template(name: str, **context) -> str:
    """Render a template outside of a request (no Request object needed)."""
    return templates.env.get_template(name).render(**context)


# ==========================================
# Register Filters & Globals
# ==========================================

# Filters (usage in template: {{ value | quetzal }})
templates.env.filters["quetzal"] = format_quetzal

# Spanish labels for enum values shown in reports
_ES_LABELS = {
    # PaymentMethod
    "efectivo": "Efectivo", "tarjeta": "Tarjeta", "transferencia": "Transferencia",
    "recargado": "Recargado", "empleados": "Empleados", "eventos": "Eventos",
    # DestinationKind
    "mesa": "Mesa", "habitacion": "Habitación",
}
templates.env.filters["es_label"] = lambda v: _ES_LABELS.get(str(getattr(v, "value", v)), str(v)) if v else "—"
