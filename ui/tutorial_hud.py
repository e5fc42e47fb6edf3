from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from tutorial.controller import TutorialController, TutorialState
from tutorial.policy import PolicyStore, TutorialPolicy

BANNERS: Dict[TutorialState, str] = {
    TutorialState.INIT: "Choose a policy to begin.",
    TutorialState.WAITING_FOR_ACTION: "Attack the enemy!",
    TutorialState.HINT: "Hint: press attack while the enemy is in range.",
    TutorialState.RETRY: "You got hit. Try again!",
    TutorialState.ASSIST: "Assist: follow the arrow and attack now.",
    TutorialState.CLEAR: "Tutorial finished.",
}


class TutorialHud:
    """Read-only overlay that mirrors the controller and policy store."""

    def __init__(self, controller: TutorialController, store: Optional[PolicyStore] = None) -> None:
        self.controller = controller
        self.store = store
        self.info_text: str = ""
        self.arrow_visible: bool = False
        self.banner: str = ""
        self.history: List[TutorialState] = []
        controller.add_state_listener(self._on_state_changed)
        if store is not None:
            store.subscribe(self._on_policy_changed)
        self.refresh()

    def _policy(self) -> TutorialPolicy:
        if self.store is None:
            return self.controller.policy
        return self.store.get_current()

    def refresh(self) -> None:
        policy = self._policy()
        state = self.controller.current_state
        self.info_text = (
            f"State: {state.value}\n"
            f"Fail count: {self.controller.fail_count}\n"
            f"Variant: {policy.variant}\n"
            f"Hint delay: {policy.hint_delay_seconds:.1f}s"
        )
        self.arrow_visible = policy.show_arrow
        self.banner = BANNERS.get(state, "")

    def _on_state_changed(self, state: TutorialState) -> None:
        self.history.append(state)
        self.refresh()

    def _on_policy_changed(self, policy: TutorialPolicy) -> None:
        self.refresh()

    def info_lines(self) -> Iterable[str]:
        yield from self.info_text.splitlines()

    def close(self) -> None:
        self.controller.remove_state_listener(self._on_state_changed)
        if self.store is not None:
            self.store.unsubscribe(self._on_policy_changed)


__all__ = ["TutorialHud", "BANNERS"]
