"""Services for cclauncher.

- shell: external command runner shared by every service
- git: worktree discovery, enrichment and lifecycle
- scripts / terminal_launcher: setup script execution bridge
- launcher: interactive and background launch engine
- model_store / project_store: JSON-backed settings
"""
