import click
import logging
import random
import sys
import time
from yaspin import yaspin

from config import load_config, read_lines
from errors import ConfigLoadFailed
from pipeline import PipelineStatus, run_keywords, summarize
from sink import OutputSink

__version__ = "0.1.0"

BANNER = r"""
=====================================
   serpharvest  v{version}
   keyword search harvester via SOCKS5
=====================================
"""


def setup_logging(verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.command()
@click.version_option(version=__version__, prog_name="serpharvest")
@click.option(
    "--threads",
    "-t",
    type=int,
    help="Number of keywords searched in parallel (Default: 10)",
)
@click.option("--keywords", "-k", type=str, help="Keyword file, one query per line")
@click.option("--user-agents", "-u", type=str, help="User-Agent file, one per line")
@click.option("--output", "-o", type=str, help="File to append result URLs to")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=str,
    help="Path to JSON config file (overrides environment variables)",
)
@click.option("--pages", type=int, help="Maximum result pages per keyword (Default: 5)")
@click.option("--page-size", type=int, help="Result offset step between pages (Default: 100)")
@click.option(
    "--deadline",
    type=float,
    help="Stop paging after this many seconds and write what was collected",
)
@click.option("--seed", type=int, help="Seed for session ids and User-Agent picks")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs instead of the spinner")
def serpharvest(threads, keywords, user_agents, output, config_path, pages, page_size,
                deadline, seed, verbose):
    """Harvest search result URLs for a list of keywords through SOCKS5 proxies.\n
    Example commands:\n
    - serpharvest -t 20\n
    - serpharvest -k keyword.txt -u ua.txt -o urls.txt --pages 3\n
    - serpharvest --config harvest.json --deadline 600\n
    """
    click.echo(BANNER.format(version=__version__))

    try:
        config = load_config(config_path)
        setup_logging(verbose or config.debug)

        overrides = {
            "concurrency": threads,
            "keyword_file": keywords,
            "ua_file": user_agents,
            "output_file": output,
            "max_pages": pages,
            "page_size": page_size,
        }
        for name, value in overrides.items():
            if value is not None:
                setattr(config, name, value)
        problems = config.validate()
        if deadline is not None and deadline <= 0:
            problems.append(f"deadline must be > 0 seconds, got {deadline}")
        if problems:
            raise ConfigLoadFailed("Invalid options: " + "; ".join(problems))

        ua_list = read_lines(config.ua_file)
        keyword_list = read_lines(config.keyword_file)
    except ConfigLoadFailed as e:
        click.echo(f"[ERROR] {e}", err=True)
        sys.exit(1)

    if not ua_list:
        click.echo(f"[WARN] {config.ua_file} is empty, every search will fail", err=True)

    click.echo(
        f"[INFO] {len(keyword_list)} keywords, {len(ua_list)} user agents, "
        f"{config.concurrency} threads -> {config.output_file}"
    )

    rng = random.Random(seed)
    sink = OutputSink(config.output_file)
    start_time = time.time()
    done = []
    interrupted = False

    try:
        if verbose:
            run_keywords(
                keyword_list, ua_list, config, sink, rng=rng, deadline=deadline,
                on_result=done.append,
            )
        else:
            with yaspin(text="Harvesting...", color="cyan") as sp:
                def progress(result):
                    done.append(result)
                    sp.text = f"Harvesting... {len(done)}/{len(keyword_list)} keywords"

                run_keywords(
                    keyword_list, ua_list, config, sink, rng=rng, deadline=deadline,
                    on_result=progress,
                )
                sp.ok("✔")
    except KeyboardInterrupt:
        interrupted = True
        click.echo("\n[WARN] Interrupted, partial results were kept", err=True)

    summary = summarize(done)
    duration = int(time.time() - start_time)
    click.echo(
        f"\n[OUTPUT] {summary['urls_written']} URLs appended to {config.output_file} "
        f"from {summary['keywords']} keywords in {duration}s"
    )
    for status in PipelineStatus:
        if summary[status.value]:
            click.echo(f"   - {status.value}: {summary[status.value]}")

    if interrupted:
        sys.exit(130)


if __name__ == "__main__":
    serpharvest()
