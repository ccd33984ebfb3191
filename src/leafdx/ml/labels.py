"""Class labels for the plant-disease model.

Index ``i`` is the label for output logit ``i``. The order is fixed by the
model's training run and must never be sorted or edited in place.
"""

from __future__ import annotations

LABELS: tuple[str, ...] = (
    "Bell Pepper- Bacterial Spot",
    "Bell Pepper- Healthy",
    "Potato- Early Blight",
    "Potato- Late Blight",
    "Potato- Healthy",
    "Tomato- Bacterial Spot",
    "Tomato- Early Blight",
    "Tomato- Late Blight",
    "Tomato- Leaf Mold",
    "Tomato- Septoria Leaf Spot",
    "Tomato- Spider Mites (Two-spotted spider_mite)",
    "Tomato- Target Spot",
    "Tomato- Tomato Yellow Leaf Curl Virus (TYLCV)",
    "Tomato- Tomato Mosaic Virus",
    "Tomato- Healthy",
)

NUM_CLASSES: int = len(LABELS)
