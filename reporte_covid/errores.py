# errores.py


class ErrorReporteCovid(Exception):
    """Error base del pipeline."""


class FuenteNoDisponible(ErrorReporteCovid):
    """Una fuente requerida no se pudo descargar, leer o no trae las columnas esperadas."""

    def __init__(self, origen: str, motivo):
        self.origen = origen
        self.motivo = motivo
        super().__init__(f"Fuente no disponible: {origen} ({motivo})")


class ColumnaFechaMalformada(ErrorReporteCovid):
    """Un encabezado de la serie ancha no tiene formato mes/dia/aa."""

    def __init__(self, columna: str):
        self.columna = columna
        super().__init__(f"Columna de fecha malformada: {columna!r} (se esperaba %m/%d/%y)")
