#!/usr/bin/env python
import sys
import logging
import argparse
from datetime import datetime, timezone
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box
from rich.text import Text
from rich.markup import escape
from certificate import Certificate
from self_ssl import CertOptions, create_ssl
from utils import load_config

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

console=Console()

def format_timestamp(moment):
    return moment.strftime("%Y-%m-%d %H:%M:%S UTC")

def certificate_table(cert:Certificate, title):
    table=Table(title=title, box=box.ROUNDED, header_style="bold magenta", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Subject", cert.subject.rfc4514_string())
    table.add_row("Issuer", cert.issuer.rfc4514_string())
    table.add_row("Country", cert.subject.country)
    table.add_row("Serial", f"{cert.serial_number:x}")
    table.add_row("Not Before", format_timestamp(cert.validity.not_before))
    table.add_row("Not After", format_timestamp(cert.validity.not_after))
    table.add_row("Valid Days", str(cert.validity.duration.days))
    table.add_row("Algorithm", cert.signature_profile().name)
    table.add_row("Alt Names", ", ".join(cert.alt_names) or "-")
    table.add_row("Extensions", ", ".join(ext.name for ext in cert.extensions) or "-")
    table.add_row("SHA-256", cert.fingerprint())
    return table

def options_from(config, args):
    values=CertOptions.normalize(config["certificate"])
    overrides={"common_name": args.cn, "organization": args.org, "country": args.country, "valid_days": args.days, "algorithm": args.algorithm}
    values.update({k: v for k, v in overrides.items() if v is not None})
    if args.alt_name: values["alt_names"]=args.alt_name
    return CertOptions.from_mapping(values)

def generate(args):
    config=load_config(args.config)
    output=config["output"]
    directory=Path(args.out or output.get("directory", "certs"))
    cert_path=directory/output.get("cert_file", "cert.pem")
    key_path=directory/output.get("key_file", "key.pem")
    credentials=create_ssl(cert_path, key_path, options_from(config, args))
    console.print(certificate_table(credentials.certificate, "Generated Certificate"))
    console.print(f"[green]✓ Certificate written to {cert_path}[/green]")
    console.print(f"[green]✓ Private key written to {key_path}[/green]")
    console.print("[yellow]Warning: self-signed, for local development only.[/yellow]")

def inspect(path):
    cert=Certificate.from_pem(Path(path).read_text())
    console.print(certificate_table(cert, str(path)))
    if cert.verify_signature():
        console.print("[green]✓ Signature verifies against the embedded public key[/green]")
    else:
        console.print("[red]✗ Signature does not verify[/red]")
    if not cert.validity.contains(datetime.now(timezone.utc)):
        console.print("[yellow]Warning: certificate is not currently valid[/yellow]")

def serve(args):
    from server import serve as run_server
    config=load_config(args.config)
    server_config=config["server"]
    output=config["output"]
    run_server(
        options=options_from(config, args),
        host=args.host or server_config.get("host", "127.0.0.1"),
        port=args.port if args.port is not None else server_config.get("port", 0),
        directory=args.out or output.get("directory", "certs"),
        cert_file=output.get("cert_file", "cert.pem"),
        key_file=output.get("key_file", "key.pem"),
    )

def show_help():
    help_text=Text()
    help_text.append("devhttps - Self-signed certificates for local HTTPS\n\n", style="bold cyan")
    help_text.append("Available Commands:\n", style="bold")
    help_text.append("  generate            ", style="green")
    help_text.append("Generate a private key and self-signed certificate\n")
    help_text.append("    --cn NAME         ", style="dim")
    help_text.append("Common name (default: localhost)\n", style="dim")
    help_text.append("    --org NAME        ", style="dim")
    help_text.append("Organization (default: MyOrg)\n", style="dim")
    help_text.append("    --country CC      ", style="dim")
    help_text.append("Two-letter country code (default: US)\n", style="dim")
    help_text.append("    --days N          ", style="dim")
    help_text.append("Days of validity (default: 365)\n", style="dim")
    help_text.append("    --algorithm ALG   ", style="dim")
    help_text.append("RSA-2048, RSA-3072, RSA-4096, ECDSA-P256, ECDSA-P384, ECDSA-P521, Ed25519\n", style="dim")
    help_text.append("    --alt-name NAME   ", style="dim")
    help_text.append("Subject alternative name, repeatable\n", style="dim")
    help_text.append("    --out DIR         ", style="dim")
    help_text.append("Output directory (default: certs)\n\n", style="dim")
    help_text.append("  inspect <file>      ", style="green")
    help_text.append("Show the fields of a PEM certificate\n\n")
    help_text.append("  serve               ", style="green")
    help_text.append("Generate a certificate and run a test HTTPS server\n")
    help_text.append("    --host HOST       ", style="dim")
    help_text.append("Bind address (default from config.toml)\n", style="dim")
    help_text.append("    --port N          ", style="dim")
    help_text.append("Port (default from config.toml)\n\n", style="dim")
    help_text.append("  help                ", style="green")
    help_text.append("Show this help message\n\n")
    help_text.append("Examples:\n", style="bold")
    help_text.append("  python cli.py generate --cn test.local --org \"Test Org\" --country CA --days 30\n", style="dim")
    help_text.append("  python cli.py inspect certs/cert.pem\n", style="dim")
    help_text.append("  python cli.py serve --port 8443\n", style="dim")
    console.print(Panel(help_text, title="Help", border_style="cyan", box=box.ROUNDED))

def main(argv=None):
    argv=sys.argv[1:] if argv is None else argv
    if not argv:
        show_help()
        sys.exit(0)
    parser=argparse.ArgumentParser(description="devhttps - Self-signed certificates for local HTTPS", add_help=False)
    parser.add_argument("command", nargs="?", help="Command to execute")
    parser.add_argument("argument", nargs="?", help="Command argument")
    parser.add_argument("--config", default="config.toml", help="Path to config.toml")
    parser.add_argument("--cn", help="Common name")
    parser.add_argument("--org", help="Organization")
    parser.add_argument("--country", help="Two-letter country code")
    parser.add_argument("--days", type=int, help="Days of validity")
    parser.add_argument("--algorithm", help="Key algorithm")
    parser.add_argument("--alt-name", action="append", help="Subject alternative name")
    parser.add_argument("--out", help="Output directory")
    parser.add_argument("--host", help="Bind address for serve")
    parser.add_argument("--port", type=int, help="Port for serve")
    args=parser.parse_args(argv)
    try:
        if args.command=="generate":
            generate(args)
        elif args.command=="inspect":
            if not args.argument:
                console.print("[red]Error: Certificate file required[/red]")
                console.print("Usage: inspect <file>")
                sys.exit(1)
            inspect(args.argument)
        elif args.command=="serve":
            serve(args)
        elif args.command=="help":
            show_help()
        else:
            console.print(f"[red]Unknown command: {args.command}[/red]")
            show_help()
            sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user.[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

if __name__=="__main__":
    main()
