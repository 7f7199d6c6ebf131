'''
Module de configuration pour le logger centralisé du service.

Ce module utilise Loguru pour fournir un logger pré-configuré avec des sorties
vers la console (avec couleurs) et des fichiers rotatifs.
'''

import os
import sys

from loguru import logger

from poisearch.config import settings

# ==============================================================================
# Configuration de Loguru
# ==============================================================================

# Création du dossier de logs s'il n'existe pas
os.makedirs(settings.LOG_DIR, exist_ok=True)

# 1. Supprimer le handler par défaut pour éviter les doublons
logger.remove()

# 2. Définir les formats pour les logs
LOG_FORMAT_CONSOLE = (
    "<white>{time:YYYY-MM-DD HH:mm:ss.SSS}</white> | "
    "<level>{level: <8}</level> | "
    "<light-black>{name}:{function}:{line}</light-black> - "
    "<level><b>{message}</b></level>"
)
LOG_FORMAT_FILE = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} - "
    "{message}"
)

# 3. Sortie console (stderr)
logger.add(
    sys.stderr,
    level=settings.LOG_LEVEL,
    format=LOG_FORMAT_CONSOLE,
    colorize=True,
    backtrace=True,
    diagnose=True
)

# 4. Fichiers de log par niveau
#    - Rotation journalière, conservation de 30 jours, compression.
logger.add(
    os.path.join(settings.LOG_DIR, "debug.log"),
    level="DEBUG",
    format=LOG_FORMAT_FILE,
    rotation="00:00",
    retention="30 days",
    compression="zip",
    encoding="utf-8",
    filter=lambda record: record["level"].name == "DEBUG"
)

logger.add(
    os.path.join(settings.LOG_DIR, "info.log"),
    level="INFO",
    format=LOG_FORMAT_FILE,
    rotation="00:00",
    retention="30 days",
    compression="zip",
    encoding="utf-8",
    filter=lambda record: record["level"].name in ("INFO", "WARNING")
)

logger.add(
    os.path.join(settings.LOG_DIR, "error.log"),
    level="ERROR",
    format=LOG_FORMAT_FILE,
    rotation="00:00",
    retention="30 days",
    compression="zip",
    encoding="utf-8",
    backtrace=True,
    diagnose=True
)
