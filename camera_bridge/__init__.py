"""
Puente entre gafas con cámara y visores web: capturas por botón o por tiempo,
caché de la última foto por usuario y difusión por WebSocket.
"""
