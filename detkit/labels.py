"""Class-name files and the COCO label and colour tables."""

from __future__ import annotations

from os import PathLike
from typing import Union

_VEHICLES = ("person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat")
_STREET = ("traffic light", "fire hydrant", "stop sign", "parking meter", "bench")
_ANIMALS = ("bird", "cat", "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe")
_ACCESSORIES = ("backpack", "umbrella", "handbag", "tie", "suitcase")
_SPORTS = (
    "frisbee", "skis", "snowboard", "sports ball", "kite",
    "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
)
_KITCHEN = ("bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl")
_FOOD = (
    "banana", "apple", "sandwich", "orange", "broccoli",
    "carrot", "hot dog", "pizza", "donut", "cake",
)
_FURNITURE = ("chair", "couch", "potted plant", "bed", "dining table", "toilet")
_ELECTRONICS = ("tv", "laptop", "mouse", "remote", "keyboard", "cell phone")
_APPLIANCES = ("microwave", "oven", "toaster", "sink", "refrigerator")
_INDOOR = ("book", "clock", "vase", "scissors", "teddy bear", "hair drier", "toothbrush")

COCO_CLASSES: tuple[str, ...] = (
    ("background",)
    + _VEHICLES + _STREET + _ANIMALS + _ACCESSORIES + _SPORTS
    + _KITCHEN + _FOOD + _FURNITURE + _ELECTRONICS + _APPLIANCES + _INDOOR
)

# One BGR colour per class index, as six hex digits each.
_PALETTE = """
3800ff e2ff00 005eff 0025ff 00ff5e ffe200 0012ff ff9700 aa00ff 00ff38
ff004b 004bff 00ffa9 ff00cf 4bff00 cf00ff 2500ff 00cfff 5e00ff 00ff71
ff1200 ff0038 1200ff 00ffe2 aaff00 ff00f5 97ff00 84ff00 4b00ff 9700ff
0097ff 8400ff 00fff5 ff8400 e200ff ff2500 cfff00 00ffcf 5eff00 00e2ff
38ff00 ff5e00 ff7100 0084ff ff0084 ffaa00 ff00bc 71ff00 f500ff 7100ff
ffbc00 0071ff ff0000 0038ff ff0071 00ffbc ff005e ff0012 12ff00 00ff84
00bcff 00f5ff 00a9ff 25ff00 ff0097 bc00ff 00ff25 00ff00 ff00aa ff0025
ff4b00 0000ff ffcf00 ff00e2 fff500 bcff00 00ff12 00ff4b 00ff97 ff3800
f5ff00
"""

COLORS: tuple[tuple[int, int, int], ...] = tuple(
    tuple(bytes.fromhex(code)) for code in _PALETTE.split()  # type: ignore[misc]
)


def load_class_names(path: Union[str, PathLike]) -> list[str]:
    """One class name per line; a final newline does not add an empty name."""
    with open(path, encoding="utf-8") as handle:
        text = handle.read()
    names = text.split("\n")
    if names and names[-1] == "":
        names.pop()
    return names