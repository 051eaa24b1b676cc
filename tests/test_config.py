import unittest

from commit_llm.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_PROMPT_TEMPLATE,
    DEFAULT_TEMPERATURE,
    PROVIDER_PRESETS,
    get_api_key,
    load_settings,
    render_prompt,
)
from commit_llm.errors import ConfigurationError
from commit_llm.registry import CUSTOM_PROVIDER, ProviderRegistry, default_registry
from commit_llm.types import ProtocolFamily


class LoadSettingsTests(unittest.TestCase):
    def test_defaults_use_aliyun_preset(self) -> None:
        settings = load_settings({})
        self.assertEqual(settings.provider, "aliyun")
        self.assertEqual(settings.url, PROVIDER_PRESETS["aliyun"].url)
        self.assertEqual(settings.model, "deepseek-r1-distill-llama-70b")
        self.assertIsNone(settings.protocol)
        self.assertEqual(PROVIDER_PRESETS[settings.provider].protocol, ProtocolFamily.OPENAI_CHAT)
        self.assertEqual(settings.temperature, DEFAULT_TEMPERATURE)
        self.assertEqual(settings.max_tokens, DEFAULT_MAX_TOKENS)
        self.assertEqual(settings.prompt_template, DEFAULT_PROMPT_TEMPLATE)

    def test_user_values_override_preset(self) -> None:
        settings = load_settings(
            {
                "COMMIT_LLM_PROVIDER": "deepseek",
                "COMMIT_LLM_URL": "https://proxy.local/v1",
                "COMMIT_LLM_MODEL": "deepseek-reasoner",
                "COMMIT_LLM_TEMPERATURE": "0.1",
                "COMMIT_LLM_TOP_P": "0.5",
                "COMMIT_LLM_MAX_TOKENS": "512",
            }
        )
        self.assertEqual(settings.url, "https://proxy.local/v1")
        self.assertEqual(settings.model, "deepseek-reasoner")
        self.assertEqual((settings.temperature, settings.top_p, settings.max_tokens), (0.1, 0.5, 512))

    def test_custom_provider_has_no_preset_fallback(self) -> None:
        with self.assertLogs("commit_llm.config", level="WARNING"):
            settings = load_settings({"COMMIT_LLM_PROVIDER": CUSTOM_PROVIDER})
        self.assertEqual(settings.url, "")
        self.assertEqual(settings.model, "")
        self.assertIsNone(settings.protocol)

        settings = load_settings(
            {"COMMIT_LLM_PROVIDER": CUSTOM_PROVIDER, "COMMIT_LLM_URL": "http://box:8080", "COMMIT_LLM_PROTOCOL": "gemini"}
        )
        self.assertEqual(ProtocolFamily.parse(settings.protocol), ProtocolFamily.GEMINI_GENERATE)

    def test_invalid_numbers_fall_back_to_defaults(self) -> None:
        with self.assertLogs("commit_llm.config", level="WARNING"):
            settings = load_settings({"COMMIT_LLM_MAX_TOKENS": "lots"})
        self.assertEqual(settings.max_tokens, DEFAULT_MAX_TOKENS)

    def test_unknown_protocol_is_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_settings({"COMMIT_LLM_PROTOCOL": "carrier-pigeon"})

    def test_api_key_lookup_order(self) -> None:
        self.assertEqual(get_api_key("deepseek", {"DEEPSEEK_API_KEY": "vendor"}), "vendor")
        self.assertEqual(
            get_api_key("deepseek", {"DEEPSEEK_API_KEY": "vendor", "COMMIT_LLM_API_KEY": "own"}), "own"
        )
        self.assertEqual(get_api_key("ollama", {}), "")


class PromptTests(unittest.TestCase):
    def test_render_prompt(self) -> None:
        rendered = render_prompt("F=${files};D=${diff};F2=${files}", ["a", "b (deleted)"], "+x")
        self.assertEqual(rendered, "F=a\nb (deleted);D=+x;F2=a\nb (deleted)")


class RegistryTests(unittest.TestCase):
    def test_every_preset_has_a_profile_or_is_custom(self) -> None:
        for name, preset in PROVIDER_PRESETS.items():
            if name == CUSTOM_PROVIDER:
                continue
            with self.subTest(provider=name):
                self.assertEqual(default_registry.get(name).protocol_family, preset.protocol)

    def test_overrides_return_new_registry(self) -> None:
        registry = default_registry.with_overrides(
            {
                "ollama": {"default_host": "gpu-box"},
                "lmstudio": {
                    "protocol_family": "openai-chat",
                    "default_host": "lmstudio.local",
                    "default_path_suffix": "/v1/chat/completions",
                },
            }
        )
        self.assertEqual(registry.get("ollama").default_host, "gpu-box")
        self.assertEqual(default_registry.get("ollama").default_host, "localhost")
        self.assertEqual(registry.find_by_host("lmstudio.local").name, "lmstudio")

    def test_names_are_unique(self) -> None:
        registry = ProviderRegistry([])
        registry.register(default_registry.get("openai"))
        with self.assertRaises(ValueError):
            registry.register(default_registry.get("openai"))


if __name__ == "__main__":
    unittest.main()
