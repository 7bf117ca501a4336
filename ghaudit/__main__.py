from ghaudit.main import app

app(prog_name="ghaudit")
