"""In-page controller overlay scripts.

The overlay is a small draggable panel injected into every document of the
captured page. Each button posts a ``{action, ...}`` payload through the one
exposed binding (:data:`COMMAND_BINDING`); see
``pagecapture.monitoring.commands`` for the receiving side.
"""

from __future__ import annotations

COMMAND_BINDING = "pagecaptureCommand"
OVERLAY_ELEMENT_ID = "pagecapture-overlay"
TRIM_ELEMENT_ID = "pagecapture-trim"

OVERLAY_SCRIPT = """
(() => {
  const mount = () => {
    const id = '%(overlay_id)s';
    if (document.getElementById(id) || !document.body) return;

    const send = (payload) => {
      if (typeof window.%(binding)s === 'function') window.%(binding)s(payload);
    };

    const container = document.createElement('div');
    container.id = id;
    Object.assign(container.style, {
      position: 'fixed', top: '20px', right: '20px', width: '220px',
      backgroundColor: 'rgba(0, 0, 0, 0.8)', color: 'white',
      zIndex: '999999', borderRadius: '8px', padding: '10px',
      fontFamily: 'sans-serif', fontSize: '14px',
      boxShadow: '0 4px 6px rgba(0,0,0,0.3)', userSelect: 'none'
    });
    container.innerHTML = `
      <div data-role="handle" style="cursor: move; padding-bottom: 5px; border-bottom: 1px solid #555; margin-bottom: 10px; font-weight: bold; display: flex; justify-content: space-between;">
        <span>pagecapture</span>
        <span data-role="status" style="font-size: 12px; color: #aaa;">READY</span>
      </div>
      <div style="display: flex; gap: 5px; margin-bottom: 10px;">
        <input type="number" data-role="pages" value="100" min="1" style="width: 60px; padding: 2px; border: none; border-radius: 4px;">
        <span style="font-size: 12px; align-self: center;">pages</span>
      </div>
      <div style="display: grid; grid-template-columns: 1fr 1fr; gap: 5px;">
        <button data-action="start" style="padding: 5px; background: #27ae60; color: white; border: none; border-radius: 4px;">Start</button>
        <button data-action="pause" style="padding: 5px; background: #f39c12; color: white; border: none; border-radius: 4px; display: none;">Pause</button>
        <button data-action="resume" style="padding: 5px; background: #27ae60; color: white; border: none; border-radius: 4px; display: none;">Resume</button>
        <button data-action="stop" style="padding: 5px; background: #c0392b; color: white; border: none; border-radius: 4px;">Stop</button>
      </div>
      <button data-action="trim" style="width: 100%%; margin-top: 5px; padding: 5px; background: #3498db; color: white; border: none; border-radius: 4px;">Set Area</button>
      <button data-action="continue" style="width: 100%%; margin-top: 5px; padding: 5px; background: #8e44ad; color: white; border: none; border-radius: 4px; display: none;">Continue</button>
      <div data-role="count" style="margin-top: 8px; text-align: center; font-size: 18px; font-weight: bold; color: #2ecc71;">0</div>
    `;
    document.body.appendChild(container);

    const $ = (sel) => container.querySelector(sel);
    const buttons = {
      start: $('[data-action="start"]'), pause: $('[data-action="pause"]'),
      resume: $('[data-action="resume"]'), stop: $('[data-action="stop"]'),
      trim: $('[data-action="trim"]'), cont: $('[data-action="continue"]')
    };

    const render = (state) => {
      $('[data-role="status"]').innerText = state;
      buttons.start.style.display = (state === 'CAPTURING' || state === 'PAUSED' || state === 'WAITING') ? 'none' : 'inline-block';
      buttons.pause.style.display = state === 'CAPTURING' ? 'inline-block' : 'none';
      buttons.resume.style.display = state === 'PAUSED' ? 'inline-block' : 'none';
      buttons.cont.style.display = state === 'WAITING' ? 'block' : 'none';
    };

    buttons.start.onclick = () => send({action: 'start', pages: parseInt($('[data-role="pages"]').value, 10) || null});
    buttons.pause.onclick = () => send({action: 'pause'});
    buttons.resume.onclick = () => send({action: 'resume'});
    buttons.stop.onclick = () => { if (confirm('Stop and save?')) send({action: 'stop'}); };
    buttons.trim.onclick = () => send({action: 'trim'});
    buttons.cont.onclick = () => send({action: 'continue'});

    window.__pagecaptureRender = (state, count) => {
      if (count !== null && count !== undefined) $('[data-role="count"]').innerText = count;
      if (state) render(state);
    };

    let drag = null;
    $('[data-role="handle"]').addEventListener('mousedown', (e) => {
      drag = {x: e.clientX - container.offsetLeft, y: e.clientY - container.offsetTop};
    });
    window.addEventListener('mousemove', (e) => {
      if (!drag) return;
      container.style.left = (e.clientX - drag.x) + 'px';
      container.style.top = (e.clientY - drag.y) + 'px';
      container.style.right = 'auto';
    });
    window.addEventListener('mouseup', () => { drag = null; });
  };

  if (document.readyState === 'loading') {
    window.addEventListener('DOMContentLoaded', mount);
  } else {
    mount();
  }
})();
""" % {"overlay_id": OVERLAY_ELEMENT_ID, "binding": COMMAND_BINDING}

TRIM_SCRIPT = """
(() => {
  const id = '%(trim_id)s';
  if (document.getElementById(id)) return;

  const layer = document.createElement('div');
  layer.id = id;
  Object.assign(layer.style, {
    position: 'fixed', top: '0', left: '0', width: '100vw', height: '100vh',
    zIndex: '999998', cursor: 'crosshair', background: 'rgba(0,0,0,0.3)'
  });
  document.body.appendChild(layer);

  let startX = 0, startY = 0, box = null;
  layer.addEventListener('mousedown', (e) => {
    startX = e.clientX;
    startY = e.clientY;
    box = document.createElement('div');
    Object.assign(box.style, {
      position: 'absolute', border: '2px dashed red', background: 'rgba(255,0,0,0.1)',
      left: startX + 'px', top: startY + 'px'
    });
    layer.appendChild(box);
  });
  layer.addEventListener('mousemove', (e) => {
    if (!box) return;
    const w = e.clientX - startX;
    const h = e.clientY - startY;
    box.style.width = Math.abs(w) + 'px';
    box.style.height = Math.abs(h) + 'px';
    box.style.left = (w < 0 ? e.clientX : startX) + 'px';
    box.style.top = (h < 0 ? e.clientY : startY) + 'px';
  });
  layer.addEventListener('mouseup', () => {
    const rect = box ? box.getBoundingClientRect() : null;
    layer.remove();
    if (!rect || rect.width < 1 || rect.height < 1) return;
    window.%(binding)s({
      action: 'trim_selected',
      area: {x: rect.x + window.scrollX, y: rect.y + window.scrollY, width: rect.width, height: rect.height}
    });
  });
})();
""" % {"trim_id": TRIM_ELEMENT_ID, "binding": COMMAND_BINDING}

SET_VISIBILITY_SCRIPT = """
(show) => {
  const el = document.getElementById('%(overlay_id)s');
  if (!el) return;
  el.style.opacity = show ? '1' : '0';
  el.style.pointerEvents = show ? 'auto' : 'none';
}
""" % {"overlay_id": OVERLAY_ELEMENT_ID}

RENDER_STATE_SCRIPT = """
([state, count]) => {
  if (window.__pagecaptureRender) window.__pagecaptureRender(state, count);
}
"""

# Scrolls in fixed steps until the bottom of the document is reached, so
# lazily loaded content is rendered before the full-page capture.
AUTO_SCROLL_SCRIPT = """
async ([distance, interval]) => {
  await new Promise((resolve) => {
    let travelled = 0;
    const timer = setInterval(() => {
      const height = document.body.scrollHeight;
      window.scrollBy(0, distance);
      travelled += distance;
      if (travelled >= height - window.innerHeight) {
        clearInterval(timer);
        resolve();
      }
    }, interval);
  });
}
"""
