"""
Rich rendering of compressor tree stages
"""

import io

from rich.console import Console


def consumed_positions(before, cells, width):
    """Stack positions in ``before`` consumed by exact and approximate counters, per column"""
    location = {}
    for col, stack in enumerate(before.columns):
        for idx, bit in enumerate(stack):
            location[bit] = (col, idx)

    exact_consumed = [[] for _ in range(width)]
    approx_consumed = [[] for _ in range(width)]
    for cell in cells:
        consumed = exact_consumed if cell.exact else approx_consumed
        for bit in cell.inputs:
            if bit in location:
                col, idx = location[bit]
                consumed[col].append(idx)
    return exact_consumed, approx_consumed


def circuit_summary(cells):
    """Counter counts per column, as text lines"""
    locations = {}
    for cell in cells:
        locations.setdefault(cell.column, {})
        locations[cell.column][cell.kind] = locations[cell.column].get(cell.kind, 0) + 1

    lines = [f"Total: {len(cells)} counters"]
    for col in sorted(locations):
        parts = [f"{count} {kind}" for kind, count in sorted(locations[col].items())]
        lines.append(f"  Column {col:2d}: {', '.join(parts)}")
    return lines


def render_stage(before, after, cells, stage_num, target_height, width, console):
    """Pretty print a before/after pair of bit matrices with aligned columns"""
    max_h = max(before.max_height(), after.max_height())
    exact_consumed, approx_consumed = consumed_positions(before, cells, width)

    col_width = width * 2 - 1  # each dot + space between columns

    console.print(f"\n[bold]Compression Stage {stage_num}[/bold] (target height: {target_height})")
    console.print("[blue]●[/blue] = exact counter inputs   [violet]●[/violet] = approximate counter inputs\n")

    console.print(f"{'h':>3}   {'BEFORE':^{col_width}}    {'AFTER':^{col_width}}")

    for h in range(max_h - 1, -1, -1):
        before_dots = []
        for col_idx in reversed(range(width)):
            if h >= before.height(col_idx):
                before_dots.append(" ")
            elif h in approx_consumed[col_idx]:
                before_dots.append("[violet]●[/violet]")
            elif h in exact_consumed[col_idx]:
                before_dots.append("[blue]●[/blue]")
            else:
                before_dots.append("●")
        after_dots = ["●" if h < after.height(col_idx) else " " for col_idx in reversed(range(width))]

        console.print(f"{h:>3}   {' '.join(before_dots)}    {' '.join(after_dots):<{col_width}}")

    before_counts = " ".join(str(before.height(col_idx) % 10) for col_idx in reversed(range(width)))
    after_counts = " ".join(str(after.height(col_idx) % 10) for col_idx in reversed(range(width)))
    console.print(f"{'cnt':>3}   {before_counts:<{col_width}}    {after_counts:<{col_width}}")

    console.print("\n[bold]Counters:[/bold]")
    for line in circuit_summary(cells):
        console.print(line)


def render_summary(tree, console=None):
    """Print the configuration and every compression stage of a tree

    Returns:
        the rendered text without styling
    """
    if console is None:
        console = Console(record=True, soft_wrap=True)

    ctx = tree.context
    console.print(f"\n[bold]Compressor Tree Configuration[/bold]")
    console.print(f"  Signature: {tree.signature}")
    console.print(f"  Device: {ctx.library.name}")
    console.print(f"  Metric: {ctx.metric.value}")
    console.print(f"  Compression Goal: {ctx.goal}")
    console.print(f"  Terminal Adder: {ctx.terminal}")
    console.print(f"  Approximations: {', '.join(str(ap) for ap in ctx.approximations) or 'none'}")
    console.print(f"  Output Width: {tree.out_width}")
    console.print(f"  Number of Stages: {tree.num_stages}")

    width = max([len(matrix) for matrix in tree.stages] + [1])
    for idx in range(1, len(tree.stages)):
        render_stage(
            tree.stages[idx - 1],
            tree.stages[idx],
            tree.stage_cells(idx),
            idx,
            ctx.goal,
            width,
            console,
        )

    if console.record:
        return console.export_text(styles=False)
    return None


def save_summary(tree, path):
    """Render a tree's summary and write it to a text file"""
    console = Console(record=True, soft_wrap=True, file=io.StringIO())
    text = render_summary(tree, console=console)
    with open(path, "w") as f:
        f.write(text)
    return text
