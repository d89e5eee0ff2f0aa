"""
Backend applicativo Clinica Laser.

Struttura:
- config.py         : configurazione da variabili d'ambiente (.env)
- db.py             : engine, pool e unità di lavoro SQLAlchemy
- models.py         : modelli ORM (paciente, zona_telo, procedura, procedura_zona)
- schemas.py        : validazione input (pydantic) ed esiti
- transactions.py   : scritture transazionali delle procedure (testata + zone)
- readers.py        : letture procedure con zone aggregate
- services.py       : CRUD pazienti e catalogo zone
- seed.py           : catalogo zone iniziale
- api_main.py       : API REST (FastAPI)
- cli.py            : strumenti da riga di comando
"""
