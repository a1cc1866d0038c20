from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import stat
import sys
from importlib.resources import files
from pathlib import Path

TEMPLATES = ("issuer.yaml.example", ".env.example")

_YES = ("", "s", "sim", "y", "yes")


def _check_keyring_available() -> bool:
    """True when the OS keyring has a real backend (not keyring's fail backend)."""
    import keyring
    from keyring.backends.fail import Keyring as FailKeyring

    return not isinstance(keyring.get_keyring(), FailKeyring)


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Write KEY=value into *env_file*, creating the file and its directory.

    dotenv.set_key handles the quoting, so secrets with ``#`` or spaces survive.
    """
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    env_file.touch(exist_ok=True)
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Print a chmod hint when *env_file* is readable by group or others."""
    try:
        mode = env_file.stat().st_mode
    except OSError:
        return
    if mode & (stat.S_IRGRP | stat.S_IROTH):
        print(f"\n  AVISO: {env_file} tem permissões abertas e guarda a chave da NFE.io.")
        print(f"  Rode: chmod 600 {env_file}")


def _ask_storage(keyring_ok: bool) -> str:
    """Ask where the API key goes: "1" keyring, "2" .env."""
    print()
    print("Onde guardar a chave?")
    if keyring_ok:
        print("  1. keyring do sistema operacional (recomendado)")
    else:
        print("  (keyring do sistema sem backend; só o .env está disponível)")
    print("  2. arquivo .env do diretório de configuração")

    valid = {"1", "2"} if keyring_ok else {"2"}
    answer = ""
    while answer not in valid:
        answer = input(f"Opção [{'/'.join(sorted(valid))}]: ").strip()
    return answer


def _setup_api_key(config_dir: Path) -> bool:
    """Prompt for the NFE.io API key and store it. Returns True if stored."""
    from nfe_bridge.config import KEYRING_NFE_API_KEY, delete_keyring_secret, set_keyring_secret

    print()
    print("NFE.io: chave de API")
    api_key = getpass.getpass("Cole a chave (Enter para pular): ").strip()
    if not api_key:
        print("  Sem chave por enquanto; defina NFE_API_KEY depois.")
        return False

    env_file = config_dir / ".env"
    if _ask_storage(_check_keyring_available()) == "1":
        if set_keyring_secret(KEYRING_NFE_API_KEY, api_key):
            # a copy left in .env would shadow the keyring value
            _remove_env_var(env_file, "NFE_API_KEY")
            print("  Chave guardada no keyring.")
            return True
        print("  ERRO: o keyring recusou a chave; gravando no .env.")

    _upsert_env_var(env_file, "NFE_API_KEY", api_key)
    delete_keyring_secret(KEYRING_NFE_API_KEY)
    print(f"  Chave gravada em {env_file}")
    _warn_open_permissions(env_file)
    return True


def _copy_templates(config_dir: Path) -> int:
    """Copy the bundled templates that are not there yet; returns how many."""
    bundled = files("nfe_bridge") / "templates"
    created = 0
    for name in TEMPLATES:
        target = config_dir / name
        if target.exists():
            print(f"  mantido: {target}")
            continue
        target.write_bytes((bundled / name).read_bytes())
        print(f"  novo: {target}")
        created += 1
    return created


def _init_config() -> None:
    """Bootstrap the config directory and optionally store the API key."""
    from nfe_bridge.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    for d in (config_dir, data_dir):
        d.mkdir(parents=True, exist_ok=True)

    created = _copy_templates(config_dir)
    print()
    print(f"Diretório de configuração: {config_dir}")
    print(f"Diretório de dados (locks): {data_dir}")

    has_key = False
    print()
    try:
        if input("Configurar a chave de API da NFE.io agora? [S/n]: ").strip().lower() in _YES:
            has_key = _setup_api_key(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    if not created:
        print("Nenhum arquivo novo: os modelos já estavam no diretório.")
        return
    print("Próximos passos:")
    print(f"  1. Renomeie {config_dir / 'issuer.yaml.example'} para issuer.yaml")
    print("     e informe a UF do emitente e o company_id da NFE.io")
    print(f"  2. Renomeie {config_dir / '.env.example'} para .env")
    print("     e preencha FRAPPE_URL, FRAPPE_API_KEY/SECRET e WEBHOOK_SECRET")
    if not has_key:
        print("     (inclua NFE_API_KEY)")
    print("  3. nfe-bridge serve")


def _preflight():
    """Load settings, printing a helpful message when something is missing.

    Returns the Settings, or None on failure. Auto-creates the data directory.
    """
    from nfe_bridge.config import get_data_dir, load_settings

    get_data_dir().mkdir(parents=True, exist_ok=True)
    try:
        return load_settings()
    except KeyError as exc:
        print(f"Erro: configuração obrigatória ausente: {exc.args[0]}")
        print("Execute 'nfe-bridge init' e preencha o .env / issuer.yaml.")
    except ValueError as exc:
        print(f"Erro: {exc}")
    return None


def _serve(settings, host: str, port: int | None) -> None:
    import uvicorn

    from nfe_bridge.api.app import create_app

    uvicorn.run(create_app(settings), host=host, port=port or settings.port)


def _preview(settings, name: str) -> int:
    import requests

    from nfe_bridge.services.exceptions import InvoiceBuildError, UpstreamAPIError
    from nfe_bridge.services.issuance import prepare
    from nfe_bridge.utils.formatters import format_brl

    try:
        prepared = prepare(name, settings)
    except (InvoiceBuildError, UpstreamAPIError) as exc:
        print(f"Erro: {exc}")
        return 1
    except requests.exceptions.RequestException as exc:
        print(f"Erro de conexão: {exc}")
        return 1

    request = prepared.request
    print(json.dumps(request.to_dict(), indent=2, ensure_ascii=False))
    print()
    print(f"Série {request.serie} · {request.operation_type} · {request.destination}")
    for item in request.items:
        tax = item.tax
        print(
            f"  {item.code}. {item.description} (CFOP {item.cfop}): "
            f"base {format_brl(tax.base_tax)} · ICMS {format_brl(tax.icms.amount)} · "
            f"PIS {format_brl(tax.pis.amount)} · COFINS {format_brl(tax.cofins.amount)} · "
            f"IPI {format_brl(tax.ipi.amount)}"
        )
    print(f"Total: {format_brl(request.total_amount)} · impostos {format_brl(request.total_tax)}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nfe-bridge", description="Emissão de NF-e Frappe → NFE.io")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="cria arquivos de configuração de exemplo")

    serve = sub.add_parser("serve", help="inicia o servidor de webhooks")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None)

    preview = sub.add_parser("preview", help="monta a nota de uma fatura sem emitir")
    preview.add_argument("name", help="nome do documento de fatura no Frappe")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the nfe-bridge CLI."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init":
        _init_config()
        return

    settings = _preflight()
    if settings is None:
        sys.exit(1)

    if args.command == "serve":
        _serve(settings, args.host, args.port)
    elif args.command == "preview":
        sys.exit(_preview(settings, args.name))


if __name__ == "__main__":
    main()
