from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class CategoryOption:
    label: str
    color: str

    def to_fields(self) -> dict:
        # stored field names match the documents already in the collection
        return {"value": self.label, "markerColor": self.color}


CATEGORY_OPTIONS: Tuple[CategoryOption, ...] = (
    CategoryOption("Área alagada", "orange"),
    CategoryOption("Buraco", "red"),
    CategoryOption("Chuvas fortes", "blue"),
    CategoryOption("Deslizamento", "green"),
)

SELECTION_TITLE = "Qual o tipo de evento?"


def option_for(label: str) -> Optional[CategoryOption]:
    for opt in CATEGORY_OPTIONS:
        if opt.label == label:
            return opt
    return None
