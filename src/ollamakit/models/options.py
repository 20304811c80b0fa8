"""Model options (sampling, context, hardware) sent under ``options``."""

from typing import Any


class OptionsBuilder:
    """Fluent builder for the ``options`` map of generate/chat/embed requests.

    Usage::

        options = OptionsBuilder().set_temperature(0.2).set_num_ctx(8192).build()
    """

    def __init__(self) -> None:
        self._options: dict[str, Any] = {}

    def _set(self, key: str, value: Any) -> "OptionsBuilder":
        self._options[key] = value
        return self

    def set_mirostat(self, value: int) -> "OptionsBuilder":
        """0 = disabled, 1 = Mirostat, 2 = Mirostat 2.0."""
        return self._set("mirostat", value)

    def set_mirostat_eta(self, value: float) -> "OptionsBuilder":
        return self._set("mirostat_eta", value)

    def set_mirostat_tau(self, value: float) -> "OptionsBuilder":
        return self._set("mirostat_tau", value)

    def set_num_ctx(self, value: int) -> "OptionsBuilder":
        return self._set("num_ctx", value)

    def set_num_gqa(self, value: int) -> "OptionsBuilder":
        return self._set("num_gqa", value)

    def set_num_gpu(self, value: int) -> "OptionsBuilder":
        return self._set("num_gpu", value)

    def set_num_thread(self, value: int) -> "OptionsBuilder":
        return self._set("num_thread", value)

    def set_num_predict(self, value: int) -> "OptionsBuilder":
        """Max tokens to generate. -1 = infinite, -2 = fill context."""
        return self._set("num_predict", value)

    def set_repeat_last_n(self, value: int) -> "OptionsBuilder":
        return self._set("repeat_last_n", value)

    def set_repeat_penalty(self, value: float) -> "OptionsBuilder":
        return self._set("repeat_penalty", value)

    def set_temperature(self, value: float) -> "OptionsBuilder":
        return self._set("temperature", value)

    def set_seed(self, value: int) -> "OptionsBuilder":
        return self._set("seed", value)

    def set_stop(self, value: str | list[str]) -> "OptionsBuilder":
        return self._set("stop", [value] if isinstance(value, str) else list(value))

    def set_tfs_z(self, value: float) -> "OptionsBuilder":
        return self._set("tfs_z", value)

    def set_top_k(self, value: int) -> "OptionsBuilder":
        return self._set("top_k", value)

    def set_top_p(self, value: float) -> "OptionsBuilder":
        return self._set("top_p", value)

    def set_min_p(self, value: float) -> "OptionsBuilder":
        return self._set("min_p", value)

    def set_custom_option(self, name: str, value: Any) -> "OptionsBuilder":
        """Set an option this builder has no dedicated setter for.

        Only scalar JSON values are accepted.
        """
        if not name:
            raise ValueError("Option name cannot be empty")
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(
                f"Invalid type for option '{name}': expected int, float or str, "
                f"got {type(value).__name__}"
            )
        return self._set(name, value)

    def build(self) -> dict[str, Any]:
        return dict(self._options)
