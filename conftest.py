"""
conftest.py: configuración global de pytest.
Asegura que el directorio raíz esté en sys.path para imports de core/ y ui/
aunque el proyecto no esté instalado con `pip install -e .`.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(__file__))
