"""
State layout of the Jacobi / Gauss-Seidel radio and the formula that wires it.

The solvers read and write 'system.*', the controls 'iteration.*' and
'interaction.*', the renderer subscribes to everything, and the audio layer only
follows 'system.maxError' and 'audio.*'.
"""
from .internals import Snapshot
from .rsFormula import rsFormula
from .rsViews import Field, StateView

DEFAULT_STATE = {
    'system': {
        'n': 3,
        'A': [
            [4, -1, 1],
            [4, -8, 1],
            [-2, 1, 5],
        ],
        'b': [7, -21, 15],
        'x': [1.0, 2.0, 2.0],
        'initialGuess': [1.0, 2.0, 2.0],
        'iteration': 0,
        'maxError': 0.0,
        'errors': [0.0, 0.0, 0.0],
        'converged': False,
    },
    'iteration': {
        'isAutoPlaying': False,
        'speed': 50,
        'isPaused': False,
    },
    'interaction': {
        'isDragging': False,
        'dragKnob': None,
        'dragStartY': 0,
        'dragStartX': 0,
        'dragStartValue': 0,
        'focusedKnob': None,
        'isDraggingVolume': False,
        'volumeHasMoved': False,
    },
    'display': {
        'theme': 'vintage',
        'visibleKnobs': 3,
        'visibleBands': 3,
        'visibility': {
            'header': True,
            'equalizerBands': True,
            'signalClarityDisplay': True,
            'radioBody': True,
            'speakerGrille': True,
            'powerIndicator': True,
            'knobs': True,
            'volumeControl': True,
            'tuningDial': True,
            'controls': True,
            'themeToggle': True,
        },
    },
    'audio': {
        'volume': 50,
        'isMuted': False,
    },
    'cache': {
        'lastBandRange': None,
        'lastMaxError': None,
        'bandRangeMin': -12,
        'bandRangeMax': 12,
        'bandRangeCenter': 0,
    },
}

PERSISTENCE_KEYS = {
    'SYSTEM_CONFIG': 'jacobiRadioCustomConfig',
    'THEME': 'jacobiRadioTheme',
    'VISIBILITY': 'jacobiRadioVisibility',
    'VOLUME': 'jacobiRadioVolume',
    'STARTUP_CHOICE': 'jacobiRadioStartupChoice',
    'WELCOME_SHOWN': 'jacobiRadioWelcomeShown',
}

# first match wins
KEY_TABLE = (
    ('system', PERSISTENCE_KEYS['SYSTEM_CONFIG']),
    ('display.theme', PERSISTENCE_KEYS['THEME']),
    ('display.visibility', PERSISTENCE_KEYS['VISIBILITY']),
    ('audio.volume', PERSISTENCE_KEYS['VOLUME']),
)


def default_state():
    return Snapshot.clone(DEFAULT_STATE)


# ------------------------------------------------------------------------------
# Validators
# ------------------------------------------------------------------------------
def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_n(value):
    if isinstance(value, bool) or not isinstance(value, int) or not 2 <= value <= 20:
        raise ValueError('n must be an integer between 2 and 20')


def validate_matrix(value, state):
    system = state.get('system') if isinstance(state, dict) else None
    n = system.get('n') if isinstance(system, dict) else None
    if n is None:
        return  # nothing to check against until n is known
    if not isinstance(value, (list, tuple)) or len(value) != n:
        raise ValueError(f'A must be a {n}×{n} matrix')
    for i, row in enumerate(value):
        if not isinstance(row, (list, tuple)) or len(row) != n:
            raise ValueError(f'Row {i} must have {n} elements')


def validate_volume(value):
    if not _is_number(value) or not 0 <= value <= 100:
        raise ValueError('Volume must be between 0 and 100')


def validate_speed(value):
    if not _is_number(value) or not 1 <= value <= 100:
        raise ValueError('Speed must be between 1 and 100')


def register_validators(registry):
    registry.register('system.n', validate_n)
    registry.register('system.A', validate_matrix)
    registry.register('audio.volume', validate_volume)
    registry.register('iteration.speed', validate_speed)
    return registry


# ------------------------------------------------------------------------------
# Typed views
# ------------------------------------------------------------------------------
class SystemView(StateView):
    prefix = 'system'
    n = Field(int)
    A = Field((list, tuple))
    b = Field((list, tuple))
    x = Field((list, tuple))
    initial_guess = Field((list, tuple), name='initialGuess')
    iteration = Field(int)
    max_error = Field((int, float), name='maxError')
    errors = Field((list, tuple))
    converged = Field(bool)


class IterationView(StateView):
    prefix = 'iteration'
    is_auto_playing = Field(bool, name='isAutoPlaying')
    speed = Field((int, float))
    is_paused = Field(bool, name='isPaused')


class DisplayView(StateView):
    prefix = 'display'
    theme = Field(str)
    visible_knobs = Field(int, name='visibleKnobs')
    visible_bands = Field(int, name='visibleBands')
    visibility = Field(dict)


class AudioView(StateView):
    prefix = 'audio'
    volume = Field((int, float))
    is_muted = Field(bool, name='isMuted')


# ------------------------------------------------------------------------------
# Formula
# ------------------------------------------------------------------------------
class JacobiRadioFormula(rsFormula):
    """
    Builds the radio's store: default state, validators, key table, and at start
    restores the user's theme, visibility and volume from the medium.
    """

    def __init__(self, medium=None):
        self._medium = medium
        super().__init__()
        self.system = SystemView(self.store)
        self.iteration = IterationView(self.store)
        self.display = DisplayView(self.store)
        self.audio = AudioView(self.store)

    def creating_state(self):
        return default_state()

    def creating_validators(self, registry):
        register_validators(registry)

    def creating_key_table(self):
        return KEY_TABLE

    def creating_medium(self):
        return self._medium

    def creating_restores(self):
        return (
            (PERSISTENCE_KEYS['THEME'], 'display.theme', None),
            (PERSISTENCE_KEYS['VISIBILITY'], 'display.visibility', None),
            (PERSISTENCE_KEYS['VOLUME'], 'audio.volume', None),
        )
