from .publisher import run

run()
