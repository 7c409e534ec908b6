from typing import Optional

import pygame
import pygame_gui

from tilewave.config import get_logger

BUTTON_WIDTH = 120
PADDING = 8

ACTION_REGENERATE = "regenerate"
ACTION_CLEAR = "clear"

# keyboard shortcuts for the control bar buttons
KEY_ACTIONS = {
    pygame.K_r: ACTION_REGENERATE,
    pygame.K_c: ACTION_CLEAR,
}


class MapHud:
    """Control bar under the map: Regenerate, Clear and a status line."""

    def __init__(self, manager: pygame_gui.UIManager, rect: pygame.Rect):
        self.logger = get_logger(__name__)
        self.manager = manager
        self.rect = rect

        button_height = rect.height - 2 * PADDING
        x = rect.x + PADDING
        y = rect.y + PADDING

        self.regenerate_btn = pygame_gui.elements.UIButton(
            relative_rect=pygame.Rect(x, y, BUTTON_WIDTH, button_height),
            text="Regenerate",
            manager=manager,
        )
        x += BUTTON_WIDTH + PADDING

        self.clear_btn = pygame_gui.elements.UIButton(
            relative_rect=pygame.Rect(x, y, BUTTON_WIDTH, button_height),
            text="Clear",
            manager=manager,
        )
        x += BUTTON_WIDTH + PADDING

        self.status_label = pygame_gui.elements.UILabel(
            relative_rect=pygame.Rect(x, y, max(1, rect.right - x - PADDING), button_height),
            text="Ready",
            manager=manager,
        )

        # element instance -> action mapping for fast event dispatch
        self.element_actions = {
            self.regenerate_btn: ACTION_REGENERATE,
            self.clear_btn: ACTION_CLEAR,
        }

    def process_event(self, event) -> Optional[str]:
        """Feed one pygame event to the UI; return the requested action, if any."""
        self.manager.process_events(event)

        if event.type == pygame_gui.UI_BUTTON_PRESSED:
            action = self.element_actions.get(event.ui_element)
            if action:
                self.logger.debug(f"Button pressed: {action}")
            return action

        if event.type == pygame.KEYDOWN:
            return KEY_ACTIONS.get(event.key)

        return None

    def set_status(self, stats: dict) -> str:
        text = (
            f"{stats['width']}x{stats['height']}  "
            f"collapsed {stats['collapsed']}  "
            f"contradictions {stats['contradictions']}  "
            f"attempts {stats['attempts']}"
        )
        self.status_label.set_text(text)
        return text
