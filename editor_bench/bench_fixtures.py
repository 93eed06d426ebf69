"""Synthetic editor fixtures with controlled size and content profile.

Four files are produced into a single directory:

    small.lua   short structured config, fixed template (~100 lines)
    medium.ts   repetitive near-code, grown block by block to a line target
    large.json  array of user records, grown to a byte target
    large.log   log lines cycling levels/services, grown to a byte target

Size-targeted generators keep a running byte count and stop as soon as it
reaches the target, so the final size overshoots by at most one iteration.
The whole set is generated into a temporary sibling directory and renamed
into place, so an interrupted generation never leaves a partial set behind.
"""
from __future__ import annotations

import datetime as dt
import os
import pathlib
import shutil
import tempfile
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TextIO

from .bench_config import FixtureSizes

PROFILE_SHORT_STRUCTURED = "short_structured"
PROFILE_REPETITIVE_CODE = "repetitive_code"
PROFILE_TABULAR = "tabular"
PROFILE_LOG = "log"


@dataclass
class Fixture:
    name: str
    filename: str
    content_profile: str
    path: pathlib.Path
    target_size_bytes: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size


# ---------- small.lua ----------

SMALL_LUA = """\
-- Small Lua configuration file
-- Used for benchmarking editor open latency

local M = {}

M.options = {
    tabstop = 2,
    shiftwidth = 2,
    softtabstop = 2,
    expandtab = true,
    number = true,
    relativenumber = true,
    wrap = false,
    cursorline = true,
    signcolumn = "yes",
    scrolloff = 8,
    updatetime = 250,
    timeoutlen = 300,
}

M.colors = {
    background = "#1e1e2e",
    foreground = "#cdd6f4",
    accent = "#89b4fa",
    warning = "#f9e2af",
    error = "#f38ba8",
}

function M.setup(opts)
    opts = opts or {}
    for key, value in pairs(opts) do
        M.options[key] = value
    end

    for key, value in pairs(M.options) do
        vim.opt[key] = value
    end
end

function M.get_option(key)
    return M.options[key]
end

function M.set_option(key, value)
    M.options[key] = value
    vim.opt[key] = value
end

function M.toggle(key)
    local current = M.options[key]
    if type(current) ~= "boolean" then
        return nil
    end
    M.set_option(key, not current)
    return not current
end

local keymaps = {
    { "n", "<leader>w", "<cmd>w<cr>", { desc = "Save file" } },
    { "n", "<leader>q", "<cmd>q<cr>", { desc = "Quit" } },
    { "n", "<leader>e", "<cmd>Ex<cr>", { desc = "Explorer" } },
    { "n", "<C-h>", "<C-w>h", { desc = "Go to left window" } },
    { "n", "<C-j>", "<C-w>j", { desc = "Go to lower window" } },
    { "n", "<C-k>", "<C-w>k", { desc = "Go to upper window" } },
    { "n", "<C-l>", "<C-w>l", { desc = "Go to right window" } },
    { "n", "<leader>bd", "<cmd>bdelete<cr>", { desc = "Delete buffer" } },
    { "n", "<leader>bn", "<cmd>bnext<cr>", { desc = "Next buffer" } },
    { "n", "<leader>bp", "<cmd>bprevious<cr>", { desc = "Previous buffer" } },
}

for _, map in ipairs(keymaps) do
    vim.keymap.set(unpack(map))
end

local autocmds = {
    { "BufWritePre", "*.lua", "lua vim.lsp.buf.format()" },
    { "BufReadPost", "*", 'lua vim.cmd("normal! g`\\"")' },
    { "TextYankPost", "*", "silent! lua vim.highlight.on_yank()" },
    { "FileType", "markdown", "setlocal wrap spell" },
}

local group = vim.api.nvim_create_augroup("BenchConfig", { clear = true })

for _, au in ipairs(autocmds) do
    vim.api.nvim_create_autocmd(au[1], {
        group = group,
        pattern = au[2],
        command = au[3],
    })
end

function M.statusline()
    local mode = vim.api.nvim_get_mode().mode
    local file = vim.fn.expand("%:t")
    return string.format(" %s | %s ", mode, file)
end

vim.o.statusline = "%!v:lua.require'bench'.statusline()"

return M
"""


def write_small_lua(fh: TextIO) -> None:
    fh.write(SMALL_LUA)


# ---------- medium.ts ----------

TS_HEADER = """\
// Generated TypeScript file for benchmarking
// Repeated service methods, roughly 10,000 lines

interface User {
  id: number;
  name: string;
  email: string;
  createdAt: Date;
  updatedAt: Date;
}

interface Product {
  id: number;
  name: string;
  price: number;
  description: string;
  category: string;
  inStock: boolean;
}

class DataService {
  private cache: Map<string, unknown>;
  private apiUrl: string;

  constructor(apiUrl: string) {
    this.apiUrl = apiUrl;
    this.cache = new Map();
  }

"""

TS_BLOCK = """\
  async function__I__(): Promise<User> {
    const response = await fetch(`${this.apiUrl}/users/__I__`);
    if (!response.ok) {
      throw new Error(`Failed to fetch user __I__`);
    }
    return response.json();
  }

  async function__I__WithCache(): Promise<User> {
    const cacheKey = `user___I__`;
    if (this.cache.has(cacheKey)) {
      return this.cache.get(cacheKey) as User;
    }
    const data = await this.function__I__();
    this.cache.set(cacheKey, data);
    return data;
  }

  async function__I__Product(): Promise<Product> {
    const response = await fetch(`${this.apiUrl}/products/__I__`);
    if (!response.ok) {
      throw new Error(`Failed to fetch product __I__`);
    }
    return response.json();
  }

  async function__I__ProductWithCache(): Promise<Product> {
    const cacheKey = `product___I__`;
    if (this.cache.has(cacheKey)) {
      return this.cache.get(cacheKey) as Product;
    }
    const data = await this.function__I__Product();
    this.cache.set(cacheKey, data);
    return data;
  }

"""

TS_FOOTER = """\
}

export { DataService };
export type { User, Product };
"""

TS_BLOCK_LINES = TS_BLOCK.count("\n")
TS_FOOTER_LINES = TS_FOOTER.count("\n")


def write_medium_ts(fh: TextIO, target_lines: int) -> int:
    """Emit header, then method blocks until ``target_lines`` is reached. Returns the line count."""
    fh.write(TS_HEADER)
    lines = TS_HEADER.count("\n")
    idx = 1
    while lines < target_lines:
        fh.write(TS_BLOCK.replace("__I__", str(idx)))
        lines += TS_BLOCK_LINES
        idx += 1
    fh.write(TS_FOOTER)
    return lines + TS_FOOTER_LINES


# ---------- large.json ----------

JSON_OPEN = "[\n"
JSON_CLOSE = "\n]\n"
JSON_SEPARATOR = ",\n"


def json_record(item: int) -> str:
    return f"""\
  {{
    "id": {item},
    "name": "User {item}",
    "email": "user{item}@example.com",
    "address": {{
      "street": "{item * 100} Main Street",
      "city": "Springfield",
      "state": "IL",
      "zip": "{62700 + (item % 1000)}"
    }},
    "phone": "555-{item % 10000}",
    "company": "Acme Corp",
    "title": "Software Engineer {item % 10}",
    "skills": ["JavaScript", "TypeScript", "React", "Node.js", "Python"],
    "projects": [
      {{"name": "Project Alpha", "status": "active"}},
      {{"name": "Project Beta", "status": "completed"}},
      {{"name": "Project Gamma", "status": "pending"}}
    ],
    "metadata": {{
      "created": "2024-01-{1 + (item % 28):02d}",
      "updated": "2024-02-{1 + (item % 28):02d}",
      "version": "{item % 100}.{item % 10}.0"
    }}
  }}"""


def write_large_json(fh: TextIO, target_bytes: int) -> int:
    """Emit records until the file (including brackets) reaches ``target_bytes``. Returns bytes written."""
    fh.write(JSON_OPEN)
    # Count the closing token up front so the finished file is never short.
    total = len(JSON_OPEN.encode("utf-8")) + len(JSON_CLOSE.encode("utf-8"))
    item = 0
    while total < target_bytes:
        chunk = (JSON_SEPARATOR if item > 0 else "") + json_record(item)
        fh.write(chunk)
        total += len(chunk.encode("utf-8"))
        item += 1
    fh.write(JSON_CLOSE)
    return total


# ---------- large.log ----------

LOG_LEVELS = ("INFO", "DEBUG", "WARN", "ERROR", "TRACE")
LOG_SERVICES = (
    "auth-service",
    "user-service",
    "product-service",
    "order-service",
    "payment-service",
    "notification-service",
    "cache-service",
    "api-gateway",
)
LOG_BASE_EPOCH = 1_700_000_000


def log_line(line_num: int) -> str:
    level = LOG_LEVELS[line_num % len(LOG_LEVELS)]
    service = LOG_SERVICES[line_num % len(LOG_SERVICES)]
    ts = dt.datetime.fromtimestamp(LOG_BASE_EPOCH + line_num, tz=dt.timezone.utc)
    stamp = ts.strftime("%Y-%m-%d %H:%M:%S") + f".{ts.microsecond // 1000:03d}"
    return (
        f"[{stamp}] [{level}] [{service}] Request processed successfully for user_{line_num % 10000}"
        f" - request_id=abc{line_num}def - duration={line_num % 1000}ms - status=200"
        f" - ip=192.168.{line_num % 256}.{line_num % 256}\n"
    )


def write_large_log(fh: TextIO, target_bytes: int) -> int:
    total = 0
    line_num = 0
    while total < target_bytes:
        line = log_line(line_num)
        fh.write(line)
        total += len(line.encode("utf-8"))
        line_num += 1
    return total


# ---------- registry ----------

@dataclass(frozen=True)
class FixtureSpec:
    name: str
    filename: str
    content_profile: str
    write: Callable[[TextIO, FixtureSizes], object]
    target_size: Callable[[FixtureSizes], Optional[int]]


FIXTURE_SPECS: List[FixtureSpec] = [
    FixtureSpec(
        "small_lua", "small.lua", PROFILE_SHORT_STRUCTURED,
        lambda fh, sizes: write_small_lua(fh),
        lambda sizes: None,
    ),
    FixtureSpec(
        "medium_ts", "medium.ts", PROFILE_REPETITIVE_CODE,
        lambda fh, sizes: write_medium_ts(fh, sizes.code_target_lines),
        lambda sizes: None,
    ),
    FixtureSpec(
        "large_json", "large.json", PROFILE_TABULAR,
        lambda fh, sizes: write_large_json(fh, sizes.json_target_bytes),
        lambda sizes: sizes.json_target_bytes,
    ),
    FixtureSpec(
        "large_log", "large.log", PROFILE_LOG,
        lambda fh, sizes: write_large_log(fh, sizes.log_target_bytes),
        lambda sizes: sizes.log_target_bytes,
    ),
]


def fixture_list(fixture_dir: pathlib.Path, sizes: Optional[FixtureSizes] = None) -> List[Fixture]:
    sizes = sizes or FixtureSizes()
    return [
        Fixture(
            name=spec.name,
            filename=spec.filename,
            content_profile=spec.content_profile,
            path=fixture_dir / spec.filename,
            target_size_bytes=spec.target_size(sizes),
        )
        for spec in FIXTURE_SPECS
    ]


def fixtures_complete(fixture_dir: pathlib.Path) -> bool:
    if not fixture_dir.is_dir():
        return False
    return all((fixture_dir / spec.filename).is_file() for spec in FIXTURE_SPECS)


def generate_into(out_dir: pathlib.Path, sizes: FixtureSizes) -> Dict[str, int]:
    written: Dict[str, int] = {}
    for spec in FIXTURE_SPECS:
        path = out_dir / spec.filename
        print(f"[fixtures] generating {spec.filename}", flush=True)
        with path.open("w", encoding="utf-8", newline="\n") as fh:
            spec.write(fh, sizes)
        written[spec.name] = path.stat().st_size
    return written


def ensure_fixtures(
    fixture_dir: pathlib.Path,
    sizes: Optional[FixtureSizes] = None,
    *,
    force: bool = False,
) -> List[Fixture]:
    """Make sure all fixtures exist in ``fixture_dir``; generate the full set if any is missing."""
    sizes = sizes or FixtureSizes()
    fixture_dir = pathlib.Path(fixture_dir)

    if not force and fixtures_complete(fixture_dir):
        return fixture_list(fixture_dir, sizes)

    parent = fixture_dir.parent
    parent.mkdir(parents=True, exist_ok=True)
    tmp_dir = pathlib.Path(tempfile.mkdtemp(prefix=f".{fixture_dir.name}.tmp-", dir=str(parent)))
    try:
        print(f"[fixtures] writing to {fixture_dir}", flush=True)
        generate_into(tmp_dir, sizes)
        if fixture_dir.exists():
            shutil.rmtree(fixture_dir)
        os.replace(tmp_dir, fixture_dir)
    except BaseException:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise

    fixtures = fixture_list(fixture_dir, sizes)
    for fx in fixtures:
        print(f"{fx.filename}\t{fx.size_bytes}", flush=True)
    return fixtures
