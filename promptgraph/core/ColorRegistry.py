from typing import Dict, List, Optional, Sequence
import random

# Colours used to tell LLMs apart across plots and displays.
LLM_COLOR_PALETTE: List[str] = [
    "#44d044", "#f1b933", "#e46161", "#8888f9", "#33bef0", "#bb55f9",
    "#f7ee45", "#f955cd", "#26e080", "#2654e0", "#7d8191", "#bea5d1",
]

# Colours for prompt and variable variations; kept apart from the LLM palette.
VAR_COLOR_PALETTE: List[str] = [
    "#0bdb52", "#e71861", "#7161de", "#f6d714", "#80bedb", "#ffa995", "#a9b399",
    "#dc6f0f", "#8d022e", "#138e7d", "#c6924f", "#885818", "#616b6d",
]


class ColorRegistry:
    """Keeps one stable colour per LLM name."""

    def __init__(self,
                 initial_colors: Optional[Dict[str, str]] = None,
                 rng: Optional[random.Random] = None,
                 llm_palette: Sequence[str] = LLM_COLOR_PALETTE,
                 var_palette: Sequence[str] = VAR_COLOR_PALETTE):
        self._initial = dict(initial_colors or {})
        self._colors: Dict[str, str] = dict(self._initial)
        self._rng = rng or random.Random()
        self._llm_palette = list(llm_palette)
        self._var_palette = list(var_palette)

    @property
    def colors(self) -> Dict[str, str]:
        return dict(self._colors)

    def get_color(self, llm_name: str) -> Optional[str]:
        return self._colors.get(llm_name)

    def set_color(self, llm_name: str, color: str) -> None:
        self._colors[llm_name] = color

    def get_color_and_set_if_not_found(self, llm_name: str) -> str:
        color = self.get_color(llm_name)
        if color:
            return color
        color = self.gen_unique_color()
        self.set_color(llm_name, color)
        return color

    def gen_unique_color(self) -> str:
        used = set(self._colors.values())
        for palette in (self._llm_palette, self._var_palette):
            for color in palette:
                if color not in used:
                    return color
        # Every predefined colour is taken; repeat one at random.
        return self._rng.choice(self._llm_palette + self._var_palette)

    def reset(self) -> None:
        """Forget every assigned colour, back to the constructor's initial map."""
        self._colors = dict(self._initial)
