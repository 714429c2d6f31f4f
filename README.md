# minishell

A small interactive shell for POSIX systems. It reads a line, checks its
syntax, expands variables, splits it into commands and runs them, either
one by one or joined by pipes.

## What it understands

- Pipes: `ls | grep py | wc -l`
- Redirections: `< file`, `> file`, `>> file`
- Here-documents: `cat << EOF`, which reads lines until one starts with the
  delimiter
- Single quotes, taken literally, and double quotes, where `$NAME` is expanded
- `$NAME` for variables, `$?` for the status of the last command; `$0` to
  `$9` expand to nothing
- Builtins: `cd`, `echo` (with `-n`), `env`, `exit`, `export`, `pwd`, `unset`

Any other command is looked up on `PATH` and run as a child process. The
command name is lowered to lower case before it is looked up. A command
that cannot be found reports `command not found` and sets the status to
127; one killed by signal N gives status 128 + N.

Builtins that run inside a pipeline work on a copy of the environment and
directory, so `export`, `unset` and `cd` there leave the shell unchanged.
`exit` ends the shell with status 0 whatever its argument.

A line with a misplaced `|`, `<` or `>` is refused with a syntax error
message and status 2.

Entered lines are appended to a `.minishell_history` file in the directory
the shell was started from, and loaded into line editing on start when the
`readline` module is available.

## Installing

```
pip install .
```

## Running

```
minishell
```

The prompt is `prompt> `. End input (Ctrl-D) to leave, or type `exit`.
Ctrl-C abandons the current line and sets the status to 130.

## Using it from Python

```python
from minishell.shell import Shell

shell = Shell()
shell.execute_line("export GREETING=hello")
shell.execute_line('echo "$GREETING world" > out.txt')
print(shell.last_status)
```

`Shell` takes an `Environment` or a plain mapping, and optional `stdin`,
`stdout`, `stderr` and a `readline` callable used for prompts and
here-documents. `History` in `minishell.shell` keeps the history file.

The parsing stages can also be used alone:

```python
from minishell.parser import parse_line, format_commands

commands = parse_line("cat < in.txt | sort > out.txt", [], 0)
print(format_commands(commands))
```

`minishell.lexer` holds `get_tokens` and `check_grammar`,
`minishell.words` the quote and `$` handling (`split_words`,
`expand_dollars`), `minishell.environment` the `Environment` class,
`minishell.builtins` the builtin commands and `minishell.executor` the
`Executor` that runs parsed commands.

## What it does not do

There is no `;`, `&&` or `||`, no backslash escapes, no wildcard
expansion, no subshells and no job control.

## Tests

```
pip install .[test]
pytest
```