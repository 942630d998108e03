"""
Headless run of the Jacobi radio: the solver steps through 'system.*', a
"renderer" follows every change and the "audio" layer follows the error and the
volume. Preferences go to radio_settings.json next to this file.
"""
import logging
import pathlib

from RadioStore import JsonFileMedium
from RadioStore.jacobiRadio import JacobiRadioFormula

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(name)s %(levelname)s %(message)s')


def jacobi_step(store):
    system = store.get_state()['system']
    A, b, x, n = system['A'], system['b'], system['x'], system['n']
    new_x = []
    for i in range(n):
        s = sum(A[i][j] * x[j] for j in range(n) if j != i)
        new_x.append((b[i] - s) / A[i][i])
    errors = [abs(new - old) for new, old in zip(new_x, x)]
    max_error = max(errors)
    store.batch({
        'system.x': new_x,
        'system.errors': errors,
        'system.maxError': max_error,
        'system.iteration': system['iteration'] + 1,
        'system.converged': max_error < 1e-6,
    })


class Renderer:
    def __init__(self, store):
        self.dirty = set()
        store.subscribe('*', self.on_change)

    def on_change(self, new, old, path):
        self.dirty.add(path.split('.')[0])


class Audio:
    def __init__(self, store):
        self.store = store
        store.subscribe('system.maxError', self.on_error)
        store.subscribe('audio.*', self.on_audio)

    def on_error(self, new, old, path):
        if not self.store.get('audio.isMuted'):
            print(f"  static at {min(new, 1.0) * self.store.get('audio.volume'):.2f}")

    def on_audio(self, new, old, path):
        print(f"  {path}: {old} -> {new}")


def main():
    medium = JsonFileMedium(pathlib.Path(__file__).with_name('radio_settings.json'))
    with JacobiRadioFormula(medium) as radio:
        store = radio.store
        renderer = Renderer(store)
        Audio(store)

        print(f"theme {radio.display.theme}, volume {radio.audio.volume}")
        store.set('audio.volume', 65, validate=True, persist=True)

        while not radio.system.converged and radio.system.iteration < 100:
            jacobi_step(store)
            if radio.system.iteration == 5:
                radio.audio.is_muted = True

        print(f"converged after {radio.system.iteration} steps: "
              + ', '.join(f"{v:.4f}" for v in radio.system.x))
        print(f"renderer saw changes in: {sorted(renderer.dirty)}")


if __name__ == '__main__':
    main()
