import pytest

from x402_paylinks.core.config import ServiceConfig, ServiceParameters, load_service_config
from x402_paylinks.core.environment import build_environment, parse_env_file
from x402_paylinks.core.errors import ConfigError


def test_defaults():
    config = ServiceConfig.from_mapping({})

    assert config.store_backend == "file"
    assert config.data_file == "data.json"
    assert config.default_network == "sepolia"
    assert config.verify_timeout_seconds == 30
    assert config.rpc_timeout_seconds == 15
    assert config.link_prefix == "/r/"
    assert config.port == 3000
    assert config.cors_origins == ("*",)
    assert config.service_url == "http://localhost:3000/api"


def test_values_from_mapping():
    config = ServiceConfig.from_mapping(
        {
            "X402_STORE_BACKEND": "SQL",
            "X402_DATABASE_URL": "sqlite+aiosqlite:///tmp/x.db",
            "X402_DEFAULT_NETWORK": "BNB_TESTNET",
            "X402_VERIFY_TIMEOUT_SECONDS": "12.5",
            "X402_PORT": "8080",
            "X402_CORS_ORIGINS": "https://a.example, https://b.example",
            "X402_SERVICE_URL": "https://pay.example/api/",
            "X402_RPC_URL_BNB_TESTNET": "https://rpc.example/bsc-testnet",
        }
    )

    assert config.store_backend == "sql"
    assert config.default_network == "bnb-testnet"
    assert config.networks.resolve("unknown-chain").name == "bnb-testnet"
    assert config.networks.resolve("bnb-testnet").rpc_url == "https://rpc.example/bsc-testnet"
    assert config.verify_timeout_seconds == 12.5
    assert config.port == 8080
    assert config.cors_origins == ("https://a.example", "https://b.example")
    assert config.service_url == "https://pay.example/api"


def test_token_additions_are_checksummed():
    lcx = "0x" + "3a" * 20
    config = ServiceConfig.from_mapping(
        {
            "X402_TOKEN_SEPOLIA_LCX": lcx,
            "X402_TOKEN_BNB_TESTNET_BUSD": ("4b" * 20),
        }
    )

    sepolia = config.networks.resolve("sepolia")
    testnet = config.networks.resolve("bnb-testnet")
    assert config.tokens.resolve(sepolia, "lcx").lower() == lcx
    assert config.tokens.resolve(testnet, "BUSD").lower() == "0x" + "4b" * 20
    assert config.tokens.resolve(sepolia, "USDC") is not None


@pytest.mark.parametrize(
    "values",
    [
        {"X402_STORE_BACKEND": "redis"},
        {"X402_DEFAULT_NETWORK": "solana"},
        {"X402_VERIFY_TIMEOUT_SECONDS": "soon"},
        {"X402_RPC_TIMEOUT_SECONDS": "0"},
        {"X402_PORT": "eighty"},
        {"X402_TOKEN_SEPOLIA_LCX": "0x1234"},
        {"X402_TOKEN_POLYGON_USDC": "0x" + "11" * 20},
        {"X402_TOKEN_LCX": "0x" + "11" * 20},
    ],
)
def test_invalid_values_raise_config_error(values):
    with pytest.raises(ConfigError):
        ServiceConfig.from_mapping(values)


def test_parse_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "\n".join(
            [
                "# comment",
                "export X402_PORT=4000",
                'X402_LINK_PREFIX="/pay/"',
                "X402_DEFAULT_NETWORK=ethereum # inline comment",
                "not a setting",
            ]
        )
    )

    assert parse_env_file(env_file) == {
        "X402_PORT": "4000",
        "X402_LINK_PREFIX": "/pay/",
        "X402_DEFAULT_NETWORK": "ethereum",
    }
    assert parse_env_file(tmp_path / "missing.env") == {}


def test_precedence_file_then_base_then_overrides(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("X402_PORT=4000\nX402_HOST=127.0.0.1\nX402_LINK_PREFIX=/file/\n")

    environment = build_environment(
        env_file=str(env_file),
        base={"X402_HOST": "10.0.0.1", "X402_LINK_PREFIX": "/base/"},
        overrides={"X402_LINK_PREFIX": "/override/"},
    )

    assert environment.get("X402_PORT") == "4000"
    assert environment.get("X402_HOST") == "10.0.0.1"
    assert environment.get("X402_LINK_PREFIX") == "/override/"


def test_parameters_win_over_overrides(tmp_path):
    config = ServiceConfig.from_env(
        env_file=None,
        base={},
        overrides={"X402_PORT": "5000", "X402_HOST": "localhost"},
        parameters=ServiceParameters(port=6000),
    )

    assert config.port == 6000
    assert config.host == "localhost"


def test_load_service_config_keyword_parameters():
    config = load_service_config(
        env_file=None,
        base={},
        parameters=ServiceParameters(store_backend="sql"),
        verify_timeout_seconds=3,
    )

    assert config.store_backend == "sql"
    assert config.verify_timeout_seconds == 3


def test_load_service_config_rejects_unknown_keywords():
    with pytest.raises(TypeError):
        load_service_config(env_file=None, base={}, private_key="0xabc")
