"""Keyword-based category suggestion for imported descriptions."""

from typing import Optional


# Insertion order matters: the first keyword found in the description wins
SMART_CATEGORY_MAP = {
    # Transporte
    "99": "Transporte",
    "uber": "Transporte",
    "posto": "Transporte",
    "gasolina": "Transporte",
    "combustivel": "Transporte",
    "ipva": "Transporte",
    "estacionamento": "Transporte",
    # Alimentação
    "ifood": "Alimentação",
    "mercado": "Alimentação",
    "supermercado": "Alimentação",
    "padaria": "Alimentação",
    "restaurante": "Alimentação",
    "burger": "Alimentação",
    "pizza": "Alimentação",
    "fome": "Alimentação",
    # Lazer
    "netflix": "Lazer",
    "spotify": "Lazer",
    "cinema": "Lazer",
    "steam": "Lazer",
    "jogo": "Lazer",
    "bar": "Lazer",
    # Moradia
    "aluguel": "Moradia",
    "condominio": "Moradia",
    "luz": "Moradia",
    "agua": "Moradia",
    "internet": "Moradia",
    "claro": "Moradia",
    "vivo": "Moradia",
    "tim": "Moradia",
    # Saúde
    "farmacia": "Saúde",
    "drogasil": "Saúde",
    "medico": "Saúde",
    "hospital": "Saúde",
    "academia": "Saúde",
    "smartfit": "Saúde",
    # Receita
    "salario": "Salário",
    "pagamento": "Salário",
    "pix": "Outros",
    "transferencia": "Outros",
}


def suggest_category(description: str) -> Optional[str]:
    """Category of the first keyword contained in the description, if any."""
    lowered = description.lower()
    for keyword, category in SMART_CATEGORY_MAP.items():
        if keyword in lowered:
            return category
    return None
