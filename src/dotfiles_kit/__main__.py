from dotfiles_kit.cli import app

app(prog_name="dotfiles-install")
